"""FireScout — fire and smoke detection client.

Entry point that wires: Camera → Provider chain (remote → local → simulator)
→ State machine → Alerts + History → Dashboard
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys

import uvicorn

import config
from alerts import AlertManager
from api_client import BackendClient
from auth import AuthClient, Session
from camera import Camera
from dashboard.server import (
    app,
    broadcast_alert,
    broadcast_frame,
    set_shared_state,
)
from detector import LocalModelProvider, ProviderChain, RemoteProvider, SimulatorProvider
from geolocation import LocationService
from pipeline import DetectionPipeline
from reports import ReportsClient
from storage import HistoryStore, KeyValueStore
from weather import WeatherService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="FireScout fire detection client")
    parser.add_argument("--base-url", type=str, default=None, help="Backend base URL (overrides config)")
    parser.add_argument("--storage", type=str, default=None, help="Local storage file (overrides config)")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (overrides config)")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Start the detection loop and dashboard (default)")
    run.add_argument("--camera", type=int, default=None, help="Camera index (overrides config)")
    run.add_argument("--interval", type=float, default=None, help="Seconds between captures")
    run.add_argument("--model", type=str, default=None, help="Local YOLO checkpoint for offline detection")
    run.add_argument("--simulate", action="store_true", help="Skip camera and server; use the simulator")
    run.add_argument("--no-tts", action="store_true", help="Disable voice alerts")
    run.add_argument("--port", type=int, default=None, help="Dashboard port (overrides config)")
    run.add_argument("--no-autostart", action="store_true", help="Wait for the dashboard to start detection")

    login = sub.add_parser("login", help="Log in and store the access token")
    login.add_argument("email")
    login.add_argument("--password", default=None)

    sub.add_parser("logout", help="Forget the stored access token")

    history = sub.add_parser("history", help="Show the local detection history")
    history.add_argument("--category", default=None)
    history.add_argument("--delete", metavar="ID", default=None)
    history.add_argument("--clear", action="store_true")

    sub.add_parser("reports", help="List reports submitted by this account")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
    return args


def configure_logging(level: str | None = None):
    logging.basicConfig(level=(level or config.LOG_LEVEL).upper(), format=config.LOG_FORMAT)


class FireScout:
    """Main application class orchestrating all FireScout components."""

    def __init__(self, args):
        self.args = args

        if args.base_url:
            config.API_BASE_URL = args.base_url
        if args.storage:
            config.STORAGE_PATH = args.storage
        if getattr(args, "camera", None) is not None:
            config.CAMERA_INDEX = args.camera
        if getattr(args, "interval", None):
            config.DETECTION_INTERVAL_SECONDS = args.interval
        if getattr(args, "model", None):
            config.LOCAL_MODEL_PATH = args.model
        if getattr(args, "port", None):
            config.DASHBOARD_PORT = args.port
        if getattr(args, "simulate", False):
            config.SIMULATOR_ONLY = True
            config.USE_REMOTE_API = False

        self.store = KeyValueStore(config.STORAGE_PATH)
        self.session = Session(self.store)
        self.history = HistoryStore(self.store)
        self.backend = BackendClient(config.API_BASE_URL)
        self.auth = AuthClient(self.backend, self.session)
        self.reports = ReportsClient(self.backend, self.session)
        self.location_service = LocationService()
        self.weather = WeatherService()

        self.alert_manager = None
        self.pipeline = None

    def build_pipeline(self) -> DetectionPipeline:
        print("[FireScout] Initializing provider chain...")
        self.remote = RemoteProvider(self.backend, self.session, self.location_service)
        chain = ProviderChain([
            self.remote,
            LocalModelProvider(),
            SimulatorProvider(),
        ])

        print("[FireScout] Initializing alert manager...")
        self.alert_manager = AlertManager(voice=not getattr(self.args, "no_tts", False))
        self.alert_manager.add_listener(broadcast_alert)

        camera = None if config.SIMULATOR_ONLY else Camera()
        self.pipeline = DetectionPipeline(
            chain,
            self.history,
            camera=camera,
            alert_manager=self.alert_manager,
            location_service=self.location_service,
        )
        self.pipeline.frame_listeners.append(broadcast_frame)

        set_shared_state("pipeline", self.pipeline)
        set_shared_state("alert_manager", self.alert_manager)
        set_shared_state("history", self.history)
        set_shared_state("location_service", self.location_service)
        set_shared_state("weather", self.weather)
        return self.pipeline

    async def run(self):
        pipeline = self.build_pipeline()

        await self.location_service.refresh()
        if config.USE_REMOTE_API:
            online = await self.remote.check_health()
            print(f"[FireScout] Backend {config.API_BASE_URL} is {'online' if online else 'OFFLINE'}")
            if not self.session.is_authenticated:
                print("[FireScout] Not logged in; reports will be sent anonymously")

        server = uvicorn.Server(uvicorn.Config(
            app,
            host=config.DASHBOARD_HOST,
            port=config.DASHBOARD_PORT,
            log_level="warning",
            loop="asyncio",
        ))
        print(f"[FireScout] Dashboard running at http://{config.DASHBOARD_HOST}:{config.DASHBOARD_PORT}")

        if not getattr(self.args, "no_autostart", False):
            pipeline.start()
        try:
            await server.serve()
        finally:
            pipeline.stop()
            await pipeline.scheduler.wait_idle()
            if pipeline.camera is not None:
                pipeline.camera.release()
            await self.close()
            print("[FireScout] Shutdown complete.")

    async def close(self):
        await self.backend.aclose()
        await self.location_service.aclose()
        await self.weather.aclose()

    async def login(self):
        password = self.args.password or getpass.getpass("Password: ")
        try:
            result = await self.auth.login(self.args.email, password)
        finally:
            await self.close()
        if result["success"]:
            print(f"[FireScout] Logged in as {self.args.email}")
            return 0
        print(f"[FireScout] Login failed: {result['error']}")
        return 1

    def logout(self):
        self.auth.logout()
        print("[FireScout] Logged out")
        return 0

    def show_history(self):
        if self.args.clear:
            return 0 if self.history.clear() else 1
        if self.args.delete:
            return 0 if self.history.delete(self.args.delete) else 1
        for record in self.history.filter(self.args.category):
            print(f"{record['id']}  {record.get('timestamp', '')}  "
                  f"{record.get('category', '?'):<11} risk {round(record.get('confidence', 0))}%")
        stats = self.history.stats()
        print(f"Total {stats['total']} (wildfire {stats['wildfire']}, "
              f"urban {stats['urban_fire']}, uncertain {stats['uncertain']})")
        return 0

    async def show_reports(self):
        try:
            result = await self.reports.get_my_reports()
        finally:
            await self.close()
        if not result["success"]:
            print(f"[FireScout] {result['error']}")
            return 1
        print(json.dumps(result["reports"], indent=2, ensure_ascii=False))
        return 0


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_level)
    app_instance = FireScout(args)

    if args.command == "login":
        return asyncio.run(app_instance.login())
    if args.command == "logout":
        return app_instance.logout()
    if args.command == "history":
        return app_instance.show_history()
    if args.command == "reports":
        return asyncio.run(app_instance.show_reports())

    try:
        asyncio.run(app_instance.run())
    except KeyboardInterrupt:
        print("\n[FireScout] Interrupted by user.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
