from __future__ import annotations
from flask import Flask, Response
import orjson

from ..config import CFG
from ..summary import ReportBoard


def dumps(obj) -> str:
    return orjson.dumps(obj).decode()


def render_text(board: ReportBoard) -> str:
    reports = board.latest()
    if not reports:
        return "no cycle has completed yet\n"
    out = []
    for r in reports:
        out.append(f"== {r.protocol.name}/{r.family.name} at {r.taken_at.isoformat()} "
                   f"({r.record_count} connections)")
        out.append("-- totals")
        out.extend(r.totals_lines)
        out.append("-- details")
        out.extend(r.detail_lines)
        out.append("")
    return "\n".join(out)


def create_app(cfg: CFG, board: ReportBoard) -> Flask:
    app = Flask(__name__)

    @app.get("/")
    def index():
        return Response(render_text(board), mimetype="text/plain")

    @app.get("/api/report")
    def api_report():
        return Response(dumps([r.to_dict() for r in board.latest()]), mimetype="application/json")

    @app.get("/api/config")
    def api_config():
        return Response(dumps(cfg.to_dict()), mimetype="application/json")

    return app
