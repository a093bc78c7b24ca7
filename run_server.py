#!/usr/bin/env python3
"""
Lead Refinery - API Server
==========================
Run this file to start the FastAPI server.

Usage:
    python run_server.py                # Start on port 8000
    python run_server.py --port 8080    # Start on custom port
    python run_server.py --reload       # Development mode with auto-reload

API Documentation:
    http://localhost:8000/docs          # Swagger UI
    http://localhost:8000/redoc         # ReDoc
"""

import os
import logging

# Load environment variables FIRST
from dotenv import load_dotenv
load_dotenv()

import argparse
import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Lead Refinery API Server")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    llm_status = "Enabled" if os.getenv("OPENROUTER_API_KEY") else "Disabled (rule-based)"
    search_status = "Enabled" if os.getenv("SERPER_API_KEY") else "Disabled (no evidence)"

    print(f"""
╔══════════════════════════════════════════════════════════════╗
║                     LEAD REFINERY API                        ║
║                      Version 1.0.0                           ║
╠══════════════════════════════════════════════════════════════╣
║  Server:    http://{args.host}:{args.port}                            ║
║  Docs:      http://localhost:{args.port}/docs                       ║
║  Health:    http://localhost:{args.port}/api/health                 ║
║  LLM:       {llm_status:<49}║
║  Search:    {search_status:<49}║
╠══════════════════════════════════════════════════════════════╣
║  Endpoints:                                                  ║
║    POST /api/leads/enrich        - Enrich a single lead      ║
║    POST /api/leads/enrich/batch  - Batch enrichment          ║
║    GET  /api/leads               - Vault listing             ║
║    GET  /api/jobs                - Processing floor          ║
╚══════════════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "lead_refinery.api.endpoints:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
