from __future__ import annotations
import argparse, logging, sys
from .config import LOG_LEVELS, ConfigError, init_cfg_from_args
from .collectors import MonitorScheduler
from .summary import ReportBoard
from .web import create_app

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
logger = logging.getLogger("connmon")

def parse_args(argv=None):
    ap = argparse.ArgumentParser(description='Per-process TCP/UDP connection count monitor')
    ap.add_argument('--config', type=str, default=None, help='YAML or JSON settings file')
    ap.add_argument('--min-connections', type=int, default=None,
                    help='report processes holding at least this many connections')
    ap.add_argument('--interval', type=int, default=None, help='seconds between the end of one cycle and the next')
    ap.add_argument('--udp', action='store_true', help='also sample the UDP endpoint table')
    ap.add_argument('--ipv6', action='store_true', help='also sample the IPv6 tables')
    ap.add_argument('--port', type=int, default=None, help='serve the latest report over HTTP on this port')
    ap.add_argument('--host', type=str, default='127.0.0.1', help='bind address for --port')
    ap.add_argument('--log-level', type=str.upper, default=None, choices=LOG_LEVELS)
    ap.add_argument('--log-file', type=str, default=None)
    ap.add_argument('--once', action='store_true', help='run a single cycle, print it and exit')
    return ap.parse_args(argv)

def configure_logging(level: str, log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT,
                        handlers=handlers, force=True)

def print_reports(reports) -> None:
    for r in reports:
        print(f"[*] {r.protocol.name}/{r.family.name}: {r.record_count} connections")
        for line in r.totals_lines:
            print(line)
        for line in r.detail_lines:
            print(f"    {line}")

def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        cfg = init_cfg_from_args(args)
    except ConfigError as e:
        configure_logging('INFO')
        logger.error("configuration error: %s", e)
        return 2
    configure_logging(cfg.log_level, cfg.log_file)

    board = ReportBoard()
    monitor = MonitorScheduler(cfg, board=board)
    if args.once:
        print_reports(monitor.run_cycle())
        return 0

    monitor.start()
    try:
        if cfg.port:
            app = create_app(cfg, board)
            print(f"[*] Serving on http://{args.host}:{cfg.port}")
            app.run(host=args.host, port=cfg.port, debug=False, use_reloader=False)
        else:
            print("... Press [Enter] to stop")
            input()
    except (KeyboardInterrupt, EOFError):
        pass
    finally:
        monitor.stop()
    return 0

if __name__ == '__main__':
    sys.exit(main())
