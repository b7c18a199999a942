#!/usr/bin/env python
"""
Reporting API Server

Usage:
    python run_server.py --dev                    # auto-reload, debug logs
    python run_server.py --store frame            # serve parquet data from REPORTS_DATA_PATH
    python run_server.py --gunicorn               # Gunicorn with gunicorn.conf.py
"""

import argparse
import os
import subprocess

APP = "retail_reports.main:app"


def serve(dev: bool, port: int) -> None:
    import uvicorn

    options = dict(host="0.0.0.0", port=port, access_log=False, server_header=False)
    if dev:
        options.update(reload=True, reload_dirs=["retail_reports"], log_level="debug")
    else:
        options.update(
            workers=int(os.getenv("WORKERS", 2)),
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
            proxy_headers=True,
            forwarded_allow_ips="*",
        )
    uvicorn.run(APP, **options)


def main() -> None:
    parser = argparse.ArgumentParser(description="Retail Reports API Server")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dev", action="store_true", help="Development mode with auto-reload")
    mode.add_argument("--gunicorn", action="store_true", help="Run under Gunicorn")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8000)), help="Port (default: 8000)")
    parser.add_argument("--store", choices=["sql", "frame"], help="Report store backend (overrides REPORTS_STORE)")
    parser.add_argument("--data-path", help="Parquet directory for the frame store")
    args = parser.parse_args()

    if args.store:
        os.environ["REPORTS_STORE"] = args.store
    if args.data_path:
        os.environ["REPORTS_DATA_PATH"] = args.data_path

    if args.gunicorn:
        os.environ.setdefault("BIND", f"0.0.0.0:{args.port}")
        subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], check=True)
    else:
        serve(args.dev, args.port)


if __name__ == "__main__":
    main()
