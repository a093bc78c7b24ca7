"""
Configuration settings for the Lead Refinery
"""

from typing import Dict, List, Any
import os

# =============================================================================
# LLM CONFIGURATION (OpenRouter)
# =============================================================================

LLM_CONFIG = {
    "provider": os.getenv("LLM_PROVIDER", "openrouter"),  # openrouter, openai, anthropic
    "model": os.getenv("LLM_MODEL", "openai/gpt-4o"),  # OpenRouter model format
    "api_key": os.getenv("OPENROUTER_API_KEY", ""),
    "base_url": os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1"),
    "max_tokens": 1200,
    "temperature": 0.1,
    "timeout_seconds": float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
    # OpenRouter specific headers
    "site_url": os.getenv("OPENROUTER_SITE_URL", "http://localhost:8000"),
    "app_name": os.getenv("OPENROUTER_APP_NAME", "Lead Refinery"),
}

# =============================================================================
# SEARCH CONFIGURATION (Serper.dev)
# =============================================================================

SEARCH_CONFIG = {
    "api_key": os.getenv("SERPER_API_KEY", ""),
    "base_url": os.getenv("SERPER_BASE_URL", "https://google.serper.dev"),
    "num_results": int(os.getenv("SEARCH_NUM_RESULTS", "10")),
    "timeout_seconds": float(os.getenv("SEARCH_TIMEOUT_SECONDS", "20")),
    "country": "us",
    "language": "en",
    "include_hq_fallback": True,
}

# =============================================================================
# PIPELINE DEFAULTS
# =============================================================================

PIPELINE_CONFIG = {
    "tenant_id": os.getenv("REFINERY_TENANT_ID", "INSTITUTIONAL-DEFAULT"),
    "project_id": os.getenv("REFINERY_PROJECT_ID", "REFINERY-MAIN"),
    "job_id_prefix": "INFY-REQ-",
    "job_id_length": 5,
    "taxonomy_path": os.getenv("LEAD_REFINERY_TAXONOMY_PATH", ""),
    "max_workers": int(os.getenv("REFINERY_MAX_WORKERS", "4")),
}

# =============================================================================
# THRESHOLDS
# =============================================================================

INTENT_THRESHOLDS = {
    "high_above": 70,  # confidence > 70 -> High
    "medium_min": 40,  # 40 <= confidence <= 70 -> Medium
}

VERIFICATION_THRESHOLD = 85  # is_verified = confidence > 85

RULE_BASED_CONFIDENCE = 20

# =============================================================================
# FIELD SANITIZATION
# =============================================================================

PLACEHOLDER_ZIPS = {"00000", "99999"}

ZIP_LENGTH_RANGE = (3, 10)

ALLOWED_SALUTATIONS = ["Mr.", "Ms.", "Mrs.", "Mx.", "Dr.", "Prof."]

REGIONS = ["Americas", "ANZ", "APAC", "Europe", "MEA"]

DEFAULT_REGION = "Global"

COUNTRY_REGION_MAP = {
    # Americas
    "United States": "Americas",
    "Canada": "Americas",
    "Mexico": "Americas",
    "Brazil": "Americas",
    "Argentina": "Americas",
    "Chile": "Americas",
    "Colombia": "Americas",
    "Peru": "Americas",
    # ANZ
    "Australia": "ANZ",
    "New Zealand": "ANZ",
    # APAC
    "India": "APAC",
    "China": "APAC",
    "Japan": "APAC",
    "Singapore": "APAC",
    "South Korea": "APAC",
    "Hong Kong": "APAC",
    "Taiwan": "APAC",
    "Indonesia": "APAC",
    "Malaysia": "APAC",
    "Philippines": "APAC",
    "Thailand": "APAC",
    "Vietnam": "APAC",
    # Europe
    "United Kingdom": "Europe",
    "Ireland": "Europe",
    "Germany": "Europe",
    "France": "Europe",
    "Netherlands": "Europe",
    "Belgium": "Europe",
    "Switzerland": "Europe",
    "Spain": "Europe",
    "Italy": "Europe",
    "Sweden": "Europe",
    "Norway": "Europe",
    "Denmark": "Europe",
    "Finland": "Europe",
    "Poland": "Europe",
    "Austria": "Europe",
    "Portugal": "Europe",
    # MEA
    "United Arab Emirates": "MEA",
    "Saudi Arabia": "MEA",
    "Qatar": "MEA",
    "Israel": "MEA",
    "South Africa": "MEA",
    "Egypt": "MEA",
    "Nigeria": "MEA",
    "Kenya": "MEA",
}

COUNTRY_ALIASES = {
    "us": "United States",
    "usa": "United States",
    "u.s.": "United States",
    "u.s.a.": "United States",
    "united states of america": "United States",
    "uk": "United Kingdom",
    "u.k.": "United Kingdom",
    "great britain": "United Kingdom",
    "england": "United Kingdom",
    "uae": "United Arab Emirates",
    "ksa": "Saudi Arabia",
    "korea": "South Korea",
    "republic of korea": "South Korea",
}

STATE_COUNTRY_MAP = {
    # United States
    "alabama": "United States", "alaska": "United States", "arizona": "United States",
    "arkansas": "United States", "california": "United States", "colorado": "United States",
    "connecticut": "United States", "delaware": "United States", "florida": "United States",
    "georgia": "United States", "hawaii": "United States", "idaho": "United States",
    "illinois": "United States", "indiana": "United States", "iowa": "United States",
    "kansas": "United States", "kentucky": "United States", "louisiana": "United States",
    "maine": "United States", "maryland": "United States", "massachusetts": "United States",
    "michigan": "United States", "minnesota": "United States", "mississippi": "United States",
    "missouri": "United States", "montana": "United States", "nebraska": "United States",
    "nevada": "United States", "new hampshire": "United States", "new jersey": "United States",
    "new mexico": "United States", "new york": "United States", "north carolina": "United States",
    "north dakota": "United States", "ohio": "United States", "oklahoma": "United States",
    "oregon": "United States", "pennsylvania": "United States", "rhode island": "United States",
    "south carolina": "United States", "south dakota": "United States", "tennessee": "United States",
    "texas": "United States", "utah": "United States", "vermont": "United States",
    "virginia": "United States", "washington": "United States", "west virginia": "United States",
    "wisconsin": "United States", "wyoming": "United States",
    "ca": "United States", "ny": "United States", "tx": "United States", "wa": "United States",
    "ma": "United States", "il": "United States", "nj": "United States", "fl": "United States",
    # Canada
    "ontario": "Canada", "quebec": "Canada", "british columbia": "Canada", "alberta": "Canada",
    # India
    "maharashtra": "India", "karnataka": "India", "tamil nadu": "India", "telangana": "India",
    "delhi": "India", "haryana": "India", "gujarat": "India", "west bengal": "India",
    # Australia
    "new south wales": "Australia", "victoria": "Australia", "queensland": "Australia",
}

# =============================================================================
# TITLE GOVERNANCE
# =============================================================================

# Expanded word-by-word, matched case-insensitively on whole tokens
TITLE_ABBREVIATIONS = {
    "vp": "Vice President",
    "svp": "Senior Vice President",
    "evp": "Executive Vice President",
    "avp": "Assistant Vice President",
    "ceo": "Chief Executive Officer",
    "cfo": "Chief Financial Officer",
    "coo": "Chief Operating Officer",
    "cto": "Chief Technology Officer",
    "cio": "Chief Information Officer",
    "cmo": "Chief Marketing Officer",
    "cro": "Chief Revenue Officer",
    "cdo": "Chief Data Officer",
    "cpo": "Chief Product Officer",
    "cso": "Chief Strategy Officer",
    "ciso": "Chief Information Security Officer",
    "md": "Managing Director",
    "gm": "General Manager",
    "sr": "Senior",
    "jr": "Junior",
    "mgr": "Manager",
    "dir": "Director",
    "exec": "Executive",
    "mktg": "Marketing",
    "eng": "Engineering",
    "engg": "Engineering",
    "ops": "Operations",
    "hr": "Human Resources",
    "it": "Information Technology",
    "fp&a": "Financial Planning and Analysis",
    "r&d": "Research and Development",
    "bd": "Business Development",
    "biz": "Business",
    "dev": "Development",
    "intl": "International",
    "natl": "National",
    "assoc": "Associate",
    "asst": "Assistant",
}

# Lowercase connector words stay lowercase unless first in the title
TITLE_LOWERCASE_WORDS = {"and", "of", "the", "for", "in", "to", "at", "on"}

# Checked in order; first match wins. Explicit C-level, chair and founder
# titles beat VP. Owner and board terms count only outside a VP title.
LEVEL_KEYWORD_CLASSES = [
    (1, [
        r"\bco[\s-]?founder\b",
        r"\bfounder\b",
        r"\bchairman\b",
        r"\bchairwoman\b",
        r"\bchairperson\b",
        r"\bchief\b(?! of staff)",
        r"\bc(?:x|[a-z]{1,2})o\b",
    ]),
    (2, [
        r"\bvice president\b",
        r"\bpresident\b",
        r"\b[sea]?vp\b",
    ]),
    (1, [
        r"(?<!product )\b(?:co[\s-]?)?owner\b(?!\s+(?!and\b)\w)",
        r"\bboard (?:member|director|chair|advisor)\b",
        r"\b(?:member|chair) of the board\b",
        r"\bboard of directors\b",
    ]),
    (3, [
        r"\bexecutive director\b",
        r"\bdirector\b",
        r"\bchief of staff\b",
    ]),
]

DEFAULT_LEVEL_RANK = 4

# Department keywords used for rule-based function selection and the
# marketing/sales anti-confusion rule
FUNCTION_KEYWORDS = {
    "Marketing": [r"\bmarketing\b", r"\bbrand\b", r"\bseo\b", r"\bgrowth\b", r"\bdemand gen"],
    "Sales": [r"\bsales\b", r"\bchannel\b", r"\baccount executive\b", r"\bpartner management\b"],
    "Finance": [r"\bfinance\b", r"\bfinancial\b", r"\baccounting\b", r"\bcontroller\b", r"\btreasur"],
    "Cloud Services": [r"\bcloud\b", r"\bdevops\b", r"\binfrastructure\b", r"\bsite reliability\b"],
    "Energy Transition": [r"\bsustainability\b", r"\bcarbon\b", r"\besg\b", r"\benergy transition\b"],
    "Information Technology": [
        r"\binformation technology\b", r"\bengineering\b", r"\bsoftware\b",
        r"\bdata\b", r"\banalytics\b", r"\bdeveloper\b", r"\bapplication",
    ],
}

MARKETING_TITLE_PATTERN = r"\bmarketing\b"

# =============================================================================
# DEFAULT TAXONOMY (version-stamped reference data)
# =============================================================================

TAXONOMY_VERSION = "2025.1"

DEFAULT_TAXONOMY: Dict[str, List[Dict[str, Any]]] = {
    "job_levels": [
        {"job_level_id": "L1", "rank": 1, "label": "Top Leadership",
         "title_pattern": "Founder, Owner, CEO, CxO, Board Member"},
        {"job_level_id": "L2", "rank": 2, "label": "Senior Leadership",
         "title_pattern": "President, EVP, SVP, VP"},
        {"job_level_id": "L3", "rank": 3, "label": "Senior Management",
         "title_pattern": "Director, Executive Director, Chief of Staff"},
        {"job_level_id": "L4", "rank": 4, "label": "Managers / Specialists",
         "title_pattern": "Manager, Specialist, Architect, Analyst, Engineer, Lead, Consultant"},
    ],
    "functions": [
        {"function_taxonomy_id": "FT001", "job_role": "Information Technology",
         "f0": "Information Technology", "f1": "Application Development and Maintenance", "f2": "Development"},
        {"function_taxonomy_id": "FT002", "job_role": "Information Technology",
         "f0": "Information Technology", "f1": "Business Intelligence, Data and Analytics", "f2": "Data Analytics"},
        {"function_taxonomy_id": "FT003", "job_role": "Business",
         "f0": "Energy Transition", "f1": "Carbon Management", "f2": "Sustainability"},
        {"function_taxonomy_id": "FT004", "job_role": "Business",
         "f0": "Marketing", "f1": "Digital Marketing", "f2": "SEO"},
        {"function_taxonomy_id": "FT005", "job_role": "Business",
         "f0": "Finance", "f1": "Financial Planning and Analysis", "f2": "Reporting"},
        {"function_taxonomy_id": "FT006", "job_role": "Business",
         "f0": "Sales", "f1": "Channel Sales", "f2": "Partner Management"},
        {"function_taxonomy_id": "FT007", "job_role": "Information Technology",
         "f0": "Cloud Services", "f1": "Infrastructure", "f2": "DevOps"},
    ],
    "industries": [
        {"industry_id": "IND001", "vertical_id": "V01", "vertical_code": "CMT", "industry_name": "Communication Services"},
        {"industry_id": "IND002", "vertical_id": "V01", "vertical_code": "CMT", "industry_name": "Hi Tech"},
        {"industry_id": "IND003", "vertical_id": "V01", "vertical_code": "CMT", "industry_name": "Media and Entertainment"},
        {"industry_id": "IND004", "vertical_id": "V01", "vertical_code": "CMT", "industry_name": "Semiconductor"},
        {"industry_id": "IND005", "vertical_id": "V02", "vertical_code": "COREMFG", "industry_name": "Aerospace and Defense"},
        {"industry_id": "IND006", "vertical_id": "V02", "vertical_code": "COREMFG", "industry_name": "Automotive"},
        {"industry_id": "IND007", "vertical_id": "V02", "vertical_code": "COREMFG", "industry_name": "Industrial Manufacturing"},
        {"industry_id": "IND008", "vertical_id": "V03", "vertical_code": "CRL", "industry_name": "Consumer Packaged Goods"},
        {"industry_id": "IND009", "vertical_id": "V03", "vertical_code": "CRL", "industry_name": "Retail"},
        {"industry_id": "IND010", "vertical_id": "V04", "vertical_code": "FS", "industry_name": "Financial Services"},
        {"industry_id": "IND011", "vertical_id": "V05", "vertical_code": "HCLS", "industry_name": "Healthcare"},
        {"industry_id": "IND012", "vertical_id": "V06", "vertical_code": "INS", "industry_name": "Insurance"},
        {"industry_id": "IND013", "vertical_id": "V07", "vertical_code": "SURE", "industry_name": "Oil and Gas"},
        {"industry_id": "IND014", "vertical_id": "V07", "vertical_code": "SURE", "industry_name": "Utilities"},
    ],
}
