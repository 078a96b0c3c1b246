#!/usr/bin/env python3
"""Getaway game server entry point.

Usage:
    python3 server.py
    # WebSocket clients connect to ws://localhost:3001/ws
"""

from __future__ import annotations

import logging

import uvicorn

import game_config as config
from app import create_app


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print(
        f"""
  Getaway game server
  http://localhost:{config.PORT}
  WS   /ws
  GET  /healthz
  GET  /rooms/{{code}}
"""
    )
    uvicorn.run(create_app(), host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
