from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from llmtoolbox.core.config import Settings, settings
from llmtoolbox.core.logging_db import CallJournal

from llmtoolbox.mcp.function_tool import FunctionTool
from llmtoolbox.mcp.toolbox import ToolBox
from llmtoolbox.mcp.mcp_http import mount_toolbox_routes

from llmtoolbox.tools import builtin_tools


def build_builtin_toolbox(cfg: Settings = settings, journal: Optional[CallJournal] = None) -> ToolBox:
    toolbox = ToolBox.from_settings(cfg, journal=journal)
    toolbox.add_tool(FunctionTool.from_functions(builtin_tools.ping, builtin_tools.list_capabilities, label="meta"))
    toolbox.add_tool(FunctionTool.from_functions(builtin_tools.greet, builtin_tools.echo, label="text"))
    toolbox.add_tool(FunctionTool.from_functions(builtin_tools.wait_then_echo))
    toolbox.add_tool(FunctionTool.from_object(builtin_tools.Calculator()))
    return toolbox


def create_app(cfg: Settings = settings, toolbox: Optional[ToolBox] = None) -> FastAPI:
    app = FastAPI(title=cfg.app_name)

    # ------------------------------------------------------------
    # Call journal: optional, the tool server runs without it
    # ------------------------------------------------------------
    journal: Optional[CallJournal] = None
    if toolbox is None and cfg.database_url:
        try:
            journal = CallJournal(cfg.database_url)
        except Exception as e:
            logging.exception(f"Call journal unavailable, continuing without it: {e}")

    if toolbox is None:
        toolbox = build_builtin_toolbox(cfg, journal)
    else:
        journal = toolbox.journal

    app.include_router(mount_toolbox_routes(toolbox))

    @app.get("/", tags=["meta"])
    def root():
        return {
            "name": cfg.app_name,
            "status": "ok",
            "docs": "/docs",
            "functions": list(toolbox.function_names),
            "endpoints": {
                "tools": "/mcp/tools",
                "functions": "/mcp/functions",
                "mcp_call": "/mcp/call",
                "events": "/events",
            },
        }

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/events", tags=["debug"])
    def events(limit: int = 50, function_name: Optional[str] = None):
        if journal is None:
            return {"ok": False, "error": "CallJournal not initialized", "events": []}
        return journal.recent_events(limit=limit, function_name=function_name)

    return app


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
