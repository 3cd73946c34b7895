"""Flask REST API exposing the driver ledger services."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from driver_core.exceptions import (
    BackupError,
    EmptyExportError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from driver_core.exports import default_csv_filename
from driver_core.models import Filter
from driver_core.periods import Clock
from driver_core.services import EntryService, GoalService, LedgerService, ShiftService
from driver_core.storage import JSONStorage


def create_app(data_dir: Optional[Path] = None, clock: Optional[Clock] = None) -> Flask:
    app = Flask(__name__)

    env_name = os.getenv("CONSTANT_DRIVER_ENV", "prod").lower()
    if env_name in {"dev", "development"}:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    else:
        allowed_origins = os.getenv("CONSTANT_DRIVER_ALLOWED_ORIGINS")
        if allowed_origins:
            origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
            CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)
        else:
            CORS(app)

    storage = JSONStorage(Path(data_dir or os.getenv("CONSTANT_DRIVER_DATA_DIR", "data")))
    entry_service = EntryService(storage)
    shift_service = ShiftService(storage)
    goal_service = GoalService(storage)
    ledger = LedgerService(entry_service, shift_service, goal_service, clock=clock)

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(BackupError)
    def handle_backup_error(exc: BackupError):
        return _handle_error(exc, 400, "Backup rejected")

    @app.errorhandler(EmptyExportError)
    def handle_empty_export(exc: EmptyExportError):
        return _handle_error(exc, 400, "Nothing to export")

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _period_filter() -> Filter:
        start = request.args.get("start") or None
        end = request.args.get("end") or None
        if start or end:
            return Filter(period="custom", custom_start=start, custom_end=end)
        return Filter(period=request.args.get("period") or "today")

    @app.get("/entries")
    def list_entries():
        entries = ledger.filtered(_period_filter()).entries
        return _success({"items": [entry.to_dict() for entry in entries]})

    @app.post("/entries")
    def create_entry():
        entry = entry_service.add(_json_body())
        return _success(entry.to_dict(), 201)

    @app.get("/entries/<entry_id>")
    def get_entry(entry_id: str):
        return _success(entry_service.get(entry_id).to_dict())

    @app.put("/entries/<entry_id>")
    def update_entry(entry_id: str):
        entry = entry_service.update(entry_id, _json_body())
        return _success(entry.to_dict())

    @app.delete("/entries/<entry_id>")
    def delete_entry(entry_id: str):
        entry_service.delete(entry_id)
        return _success({}, 204)

    @app.get("/shifts")
    def list_shifts():
        shifts = ledger.filtered(_period_filter()).shifts
        return _success({"items": [shift.to_dict() for shift in shifts]})

    @app.post("/shifts")
    def create_shift():
        shift = shift_service.add(_json_body())
        return _success(shift.to_dict(), 201)

    @app.get("/shifts/<shift_id>")
    def get_shift(shift_id: str):
        return _success(shift_service.get(shift_id).to_dict())

    @app.put("/shifts/<shift_id>")
    def update_shift(shift_id: str):
        shift = shift_service.update(shift_id, _json_body())
        return _success(shift.to_dict())

    @app.delete("/shifts/<shift_id>")
    def delete_shift(shift_id: str):
        shift_service.delete(shift_id)
        return _success({}, 204)

    @app.get("/goals")
    def get_goals():
        return _success(goal_service.get().to_dict())

    @app.put("/goals")
    def replace_goals():
        return _success(goal_service.update(_json_body()).to_dict())

    @app.get("/goals/overview")
    def goals_overview():
        return _success({
            "items": [
                {
                    "bucket": line.bucket,
                    "metric": line.metric,
                    "progress": line.progress.to_dict(),
                }
                for line in ledger.goal_overview()
            ]
        })

    @app.get("/stats")
    def stats():
        dashboard = ledger.dashboard(_period_filter())
        return _success({
            "filter": dashboard.filter.to_dict(),
            "stats": dashboard.stats.to_dict(),
            "goal_bucket": dashboard.goal_bucket,
            "profit_progress": (
                dashboard.profit_progress.to_dict() if dashboard.profit_progress else None
            ),
            "revenue_progress": (
                dashboard.revenue_progress.to_dict() if dashboard.revenue_progress else None
            ),
        })

    @app.get("/insights")
    def insights():
        return _success(ledger.insights(_period_filter()).to_dict())

    @app.get("/backup")
    def export_backup():
        return _success(ledger.export_backup())

    @app.post("/backup")
    def import_backup():
        ledger.import_backup(request.get_data(as_text=True))
        return _success({"status": "imported"})

    @app.get("/export.csv")
    def export_csv():
        content = ledger.export_csv(_period_filter())
        return Response(
            content,
            mimetype="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={default_csv_filename()}"
            },
        )

    @app.get("/report")
    def report():
        return Response(ledger.report(_period_filter()), mimetype="text/html")

    return app
