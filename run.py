import sys
import logging
import argparse
from app import create_app

log = logging.getLogger('werkzeug')
log.disabled = True
cli = sys.modules['flask.cli']
cli.show_server_banner = lambda *x: None


def main() -> None:
    p = argparse.ArgumentParser(prog="smartmark")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8073)
    args = p.parse_args()

    app = create_app()
    print(f"Smart Bookmark starting on http://{args.host}:{args.port}", flush=True)
    app.run(host=args.host, port=args.port, debug=False, threaded=True)

if __name__ == "__main__":
    main()
