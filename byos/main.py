"""Main FastAPI application."""

import hashlib
import io
import logging
import sqlite3
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from email.utils import formatdate
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from .config import settings
from .imaging.bmp import banded_test_image
from .imaging.raster import convert_to_bmp, render_bmp
from .screens.renderer import RenderContext, ScreenKind, ScreenRenderer
from .trmnl.database import DeviceDatabase, utcnow
from .trmnl.errors import DeviceNotRegistered, InvalidIdentifier, PersistenceWriteFailure, RenderFailure
from .trmnl.identity import generate_api_key, generate_friendly_id, is_valid_identifier, normalize
from .trmnl.models import (
    DeviceLogRequest,
    DeviceStatus,
    DisplayResponse,
    LogResponse,
    SetupRequest,
    SetupResponse,
)
from .trmnl.refresh import base_refresh_rate, compute_interval, is_known_timezone, next_update_at
from .trmnl.resolver import DeviceHeaders, DeviceResolver
from .trmnl.system_log import SystemLogHandler

VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, ID, Access-Token",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.db = DeviceDatabase(settings.database_path)
    handler = None
    if settings.persist_system_logs:
        handler = SystemLogHandler(app.state.db)
        logging.getLogger().addHandler(handler)
    yield
    if handler:
        logging.getLogger().removeHandler(handler)


# Initialize FastAPI app
app = FastAPI(
    title="TRMNL BYOS",
    description="Bring Your Own Server backend for TRMNL e-ink displays",
    version=VERSION,
    lifespan=lifespan,
)

# Initialize components
renderer = ScreenRenderer(
    calendar_timezone=settings.calendar_timezone,
    calendar_max_rows=settings.calendar_max_rows,
)


def get_database(request: Request) -> DeviceDatabase:
    return request.app.state.db


def get_renderer() -> ScreenRenderer:
    return renderer


def get_resolver(db: DeviceDatabase = Depends(get_database)) -> DeviceResolver:
    return DeviceResolver(
        db,
        default_refresh_rate=settings.default_refresh_rate,
        default_timezone=settings.default_timezone,
    )


def device_headers(request: Request) -> DeviceHeaders:
    """Identity and telemetry headers shared by all device endpoints."""
    return DeviceHeaders.from_headers(request.headers)


def get_base_url(request: Request) -> str:
    """Get base URL for serving images."""
    if settings.app_url:
        return settings.app_url.rstrip("/")
    return f"{request.url.scheme}://{request.headers.get('host', 'localhost')}"


def prefers_svg(request: Request) -> bool:
    """
    Decide whether a render request should get SVG instead of BMP.

    Devices always get BMP: they send identity headers or ask for image/bmp.
    Browsers get SVG for inspection.
    """
    headers = request.headers
    accept = headers.get("accept", "").lower()
    if headers.get("ID") or headers.get("Access-Token") or "image/bmp" in accept:
        return False
    return "mozilla" in headers.get("user-agent", "").lower() or "text/html" in accept


def bmp_response(data: bytes, cache_control: Optional[str] = None) -> Response:
    headers = {"Cache-Control": cache_control} if cache_control else dict(NO_CACHE_HEADERS)
    headers.update(CORS_HEADERS)
    return Response(content=data, media_type="image/bmp", headers=headers)


async def read_json(request: Request) -> dict:
    """Request body as a dict; empty for missing or malformed bodies."""
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@app.exception_handler(RenderFailure)
async def render_failure_handler(request: Request, exc: RenderFailure):
    return JSONResponse(
        status_code=500,
        content={"error": "Image generation failed", "details": str(exc)},
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "TRMNL BYOS",
        "version": VERSION,
        "endpoints": {
            "setup": "/api/setup",
            "display": "/api/display",
            "log": "/api/log",
            "render": "/api/render",
            "render_week": "/api/render-week",
            "year_progress": "/api/bitmap/year-progress.bmp",
            "test_image": "/api/test-image",
            "status": "/status",
        },
    }


@app.get("/status")
async def status(db: DeviceDatabase = Depends(get_database)):
    """Server status endpoint."""
    return {
        "status": "running",
        "version": VERSION,
        "timestamp": utcnow().isoformat(),
        "devices": db.count_devices(),
    }


@app.get("/api/setup")
async def setup_health():
    """Setup health check used by the device before provisioning."""
    return {"status": "ok", "message": "TRMNL BYOS server is ready"}


@app.post("/api/setup", response_model=SetupResponse, response_model_exclude_none=True)
async def setup_endpoint(
    request: Request,
    db: DeviceDatabase = Depends(get_database),
    mac_address: Optional[str] = Header(None, alias="ID"),
):
    """
    Device provisioning during first boot.

    Creates the device and returns its API key, or updates a known device.
    The API key is only ever returned on creation.
    """
    logger.info(f"Setup request from device: {mac_address}")

    if not mac_address:
        logger.warning("Setup request missing MAC address in headers")
        return JSONResponse(status_code=400, content={"error": "MAC address is required in ID header"})

    if not is_valid_identifier(mac_address):
        logger.warning(f"Setup request with invalid MAC address format: {mac_address!r}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid MAC address format. Expected format: XX:XX:XX:XX:XX:XX"},
        )

    normalized_mac = normalize(mac_address)
    try:
        body = SetupRequest.model_validate(await read_json(request))
    except ValidationError:
        body = SetupRequest()
    image_base = f"{get_base_url(request)}/api/render"

    existing = db.get_device_by_mac(normalized_mac)
    if existing:
        updates = {"last_seen_at": utcnow()}
        if body.firmware_version:
            updates["firmware_version"] = body.firmware_version
        try:
            db.update_device(existing.id, **updates)
        except PersistenceWriteFailure as e:
            logger.error(f"Database error updating device {existing.friendly_id}: {e}")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

        device = db.get_device(existing.id)
        logger.info(f"Device updated successfully: {device.friendly_id} ({normalized_mac})")
        return SetupResponse(
            status="updated",
            friendly_id=device.friendly_id,
            device=device.public(),
            image_url=f"{image_base}?device_id={device.id}",
            message="Welcome back to TRMNL BYOS",
        )

    timezone_name = settings.default_timezone
    if body.timezone:
        if is_known_timezone(body.timezone):
            timezone_name = body.timezone
        else:
            logger.warning(f"Ignoring unknown timezone {body.timezone!r} for {normalized_mac}")

    api_key = generate_api_key(normalized_mac, settings.api_key_secret)
    friendly_id = generate_friendly_id(normalized_mac)
    try:
        device = db.create_device(
            mac_address=normalized_mac,
            api_key=api_key,
            friendly_id=friendly_id,
            name=body.device_name or f"TRMNL Device {friendly_id[-6:]}",
            screen=body.screen or "default",
            timezone=timezone_name,
            refresh_schedule=str(settings.default_refresh_rate),
            firmware_version=body.firmware_version or "unknown",
            last_seen_at=utcnow(),
        )
    except sqlite3.Error as e:
        logger.error(f"Database error creating device {normalized_mac}: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    logger.info(f"Device provisioned: {friendly_id} ({normalized_mac})")
    return SetupResponse(
        status="created",
        friendly_id=friendly_id,
        device=device.public(),
        image_url=f"{image_base}?device_id={device.id}",
        api_key=api_key,
    )


@app.get("/api/display", response_model=DisplayResponse, response_model_exclude_none=True)
async def display_endpoint(
    request: Request,
    background_tasks: BackgroundTasks,
    headers: DeviceHeaders = Depends(device_headers),
    resolver: DeviceResolver = Depends(get_resolver),
    db: DeviceDatabase = Depends(get_database),
):
    """
    Primary device endpoint for screen content delivery.

    Always answers 200; failures are reported in the status field because
    the firmware does not look at HTTP status codes.
    """
    logger.info(f"Display request from device: {headers.mac_address or 'unknown'}")

    try:
        resolution = resolver.resolve(headers)
        device = resolution.device
        background_tasks.add_task(resolver.record_contact, device, headers.status)

        screen = db.get_active_screen(device.id)
        base_url = get_base_url(request)
        timestamp = int(time.time())
        if screen:
            image_url = f"{base_url}/api/render?device_id={device.id}&screen_id={screen.id}"
            filename = f"screen-{screen.id}-{timestamp}"
        else:
            logger.info(f"No active screen for {device.friendly_id}, serving default")
            image_url = f"{base_url}/api/render?device_id={device.id}&type=default"
            filename = f"default-{timestamp}"

        refresh_rate = compute_interval(
            device.timezone,
            base_refresh_rate(device, screen, settings.default_refresh_rate),
        )
        next_update = next_update_at(device.timezone, refresh_rate)
        logger.info(
            f"Serving {filename} to {device.friendly_id}, refresh in {refresh_rate}s "
            f"(next update {next_update:%Y-%m-%d %H:%M %Z})"
        )

        return DisplayResponse(
            status="ok",
            image_url=image_url,
            filename=filename,
            refresh_rate=refresh_rate,
            friendly_id=device.friendly_id,
            auth_method=resolution.auth_method,
            image_url_timeout=settings.image_url_timeout,
        )
    except (InvalidIdentifier, DeviceNotRegistered) as e:
        return DisplayResponse(status="error", message=str(e))
    except Exception:
        logger.exception("Display error")
        return DisplayResponse(status="error", message="Internal server error")


@app.post("/api/log", response_model=LogResponse)
async def log_endpoint(
    request: Request,
    background_tasks: BackgroundTasks,
    headers: DeviceHeaders = Depends(device_headers),
    resolver: DeviceResolver = Depends(get_resolver),
    db: DeviceDatabase = Depends(get_database),
):
    """
    Device telemetry and logging endpoint.

    Resolves the device like /api/display and stores the entry. Always answers 200.
    """
    try:
        resolution = resolver.resolve(headers)
        device = resolution.device

        try:
            body = DeviceLogRequest.model_validate(await read_json(request))
        except ValidationError:
            body = DeviceLogRequest()

        # Headers win over body telemetry
        telemetry = DeviceStatus(
            battery_voltage=(
                headers.status.battery_voltage
                if headers.status.battery_voltage is not None
                else body.battery_voltage
            ),
            firmware_version=headers.status.firmware_version or body.firmware_version,
            rssi=headers.status.rssi if headers.status.rssi is not None else body.rssi,
        )
        background_tasks.add_task(resolver.record_contact, device, telemetry)

        log_data = {
            **(body.model_extra or {}),
            **body.log_data,
            "auth_method": resolution.auth_method,
            "timestamp": utcnow().isoformat(),
        }
        try:
            db.insert_log(
                device.id,
                device.friendly_id,
                body.level,
                body.message or f"Log entry from {device.friendly_id}",
                log_data,
            )
        except PersistenceWriteFailure as e:
            logger.error(f"Failed to store device log: {e}")

        logger.debug(f"Log from device {device.friendly_id}: {body.model_dump(exclude_none=True)}")
        return LogResponse()
    except (InvalidIdentifier, DeviceNotRegistered) as e:
        return LogResponse(status="error", message=str(e))
    except Exception:
        logger.exception("Log endpoint error")
        return LogResponse(status="error", message="Internal server error")


@app.get("/api/render")
def render_endpoint(
    request: Request,
    device_id: Optional[int] = Query(None),
    screen_id: Optional[int] = Query(None),
    type: Optional[str] = Query(None, description="Screen type override"),
    db: DeviceDatabase = Depends(get_database),
    screen_renderer: ScreenRenderer = Depends(get_renderer),
):
    """
    Render a device's screen as a 1-bit BMP.

    The week calendar is returned as SVG to browsers.
    """
    logger.info(f"Render request: device={device_id} screen={screen_id} type={type}")

    device = db.get_device(device_id) if device_id is not None else None
    if device_id is not None and device is None:
        return JSONResponse(status_code=404, content={"error": "Device not found"})

    screen = None
    if screen_id is not None:
        screen = db.get_screen(screen_id)
        if screen is None or (device and screen.device_id != device.id):
            return JSONResponse(status_code=404, content={"error": "Screen not found"})
    elif type is None and device:
        screen = db.get_active_screen(device.id)

    kind = type or (screen.type if screen else ScreenKind.DEFAULT.value)
    context = RenderContext(
        now=datetime.now(timezone.utc),
        device_label=device.name if device else None,
        timezone=device.timezone if device else None,
    )

    try:
        scene = screen_renderer.render(kind, screen.config if screen else {}, context)
        if kind == ScreenKind.CALENDAR_WEEK.value and prefers_svg(request):
            return Response(
                content=scene.to_svg(),
                media_type="image/svg+xml",
                headers={"Cache-Control": "public, max-age=60"},
            )
        data = render_bmp(scene)
    except Exception as e:
        logger.exception("Render error")
        raise RenderFailure(str(e)) from e

    logger.info(f"Image generated successfully: {kind}, {len(data)} bytes")
    return bmp_response(data)


@app.get("/api/render-week")
def render_week_endpoint(
    request: Request,
    screen_renderer: ScreenRenderer = Depends(get_renderer),
):
    """Week calendar, SVG for browsers and BMP for devices, with ETag revalidation."""
    try:
        scene = screen_renderer.render(
            ScreenKind.CALENDAR_WEEK, {}, RenderContext(now=datetime.now(timezone.utc))
        )
        if prefers_svg(request):
            content, media_type = scene.to_svg().encode(), "image/svg+xml"
        else:
            content, media_type = render_bmp(scene), "image/bmp"
    except Exception as e:
        logger.exception("Week calendar render error")
        raise RenderFailure(str(e)) from e

    etag = f'"{hashlib.sha1(content).hexdigest()}"'
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={"ETag": etag})

    return Response(
        content=content,
        media_type=media_type,
        headers={
            "ETag": etag,
            "Cache-Control": "public, max-age=60",
            "Last-Modified": formatdate(usegmt=True),
        },
    )


@app.get("/api/bitmap/year-progress.bmp")
def year_progress_endpoint(screen_renderer: ScreenRenderer = Depends(get_renderer)):
    """Year progress dot grid as a 1-bit BMP."""
    try:
        scene = screen_renderer.render(
            ScreenKind.YEAR_PROGRESS, {}, RenderContext(now=datetime.now(timezone.utc))
        )
        data = render_bmp(scene)
    except Exception as e:
        logger.exception("Year progress bitmap generation failed")
        raise RenderFailure(str(e)) from e

    logger.info(f"Year progress bitmap generated: {len(data)} bytes")
    return bmp_response(data, cache_control="public, max-age=3600")


@app.get("/api/test-image")
def test_image_endpoint():
    """
    Banded test pattern for checking a panel decodes our BMPs.

    The pattern is encoded as PNG first and then decoded, fitted and
    thresholded by convert_to_bmp like any source image.
    """
    buffer = io.BytesIO()
    banded_test_image().save(buffer, format="PNG")
    try:
        data = convert_to_bmp(buffer.getvalue())
    except Exception as e:
        logger.exception("Test image generation failed")
        raise RenderFailure(str(e)) from e
    return bmp_response(data)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
