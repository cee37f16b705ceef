"""
Operator entry point.
Runs the controller manager in the background of a small FastAPI app that
serves health probes and Prometheus metrics.
"""
import socket
import sys
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from dbaas_operator.api.v1 import health
from dbaas_operator.config.logging import configure_logging, get_logger
from dbaas_operator.config.redis import RedisConnection
from dbaas_operator.config.settings import Settings, settings
from dbaas_operator.exceptions import ConfigurationError, OperatorException
from dbaas_operator.services.digitalocean_gateway import DigitalOceanGateway
from dbaas_operator.services.fake_gateway import FakeGateway
from dbaas_operator.services.gateway import ProvisioningGateway
from dbaas_operator.store.base import ResourceStore
from dbaas_operator.store.kubernetes import KubernetesStore
from dbaas_operator.store.memory import InMemoryStore
from dbaas_operator.workers.controller_manager import ControllerManager
from dbaas_operator.workers.leader_election import LeaderElection

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Initialize Sentry for error tracking (production)
if settings.sentry_dsn and settings.is_production:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        environment=settings.environment,
        release=settings.app_version,
    )


def build_gateway(config: Settings) -> ProvisioningGateway:
    """
    Create the provisioning API client.

    Raises:
        ConfigurationError: If the real API is selected without a token
    """
    if config.use_fake_gateway:
        logger.warning("using_fake_gateway", message="Remote resources are simulated in memory")
        return FakeGateway()
    if not config.api_token:
        raise ConfigurationError("API_TOKEN must be set unless USE_FAKE_GATEWAY is enabled")
    return DigitalOceanGateway(
        token=config.api_token,
        base_url=config.api_url,
        timeout=config.api_timeout_seconds,
        user_agent=f"{config.app_name}/{config.app_version}",
    )


async def build_store(config: Settings) -> ResourceStore:
    """Create and connect the desired-state store."""
    if config.store_backend == "memory":
        logger.warning("using_memory_store", message="Records are lost on restart")
        return InMemoryStore()

    store = KubernetesStore(config)
    await store.connect()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.
    Connects the store and gateway, then runs the controllers until shutdown.
    """
    logger.info(
        "operator_starting",
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
    )

    try:
        store = await build_store(settings)
        gateway = build_gateway(settings)

        leader_election = None
        if settings.leader_election_enabled:
            client = await RedisConnection.connect(settings)
            instance_id = f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"
            leader_election = LeaderElection(
                client,
                instance_id=instance_id,
                lease_duration=settings.leader_lease_duration,
            )

        manager = ControllerManager(store, gateway, settings, leader_election)
        app.state.store = store
        app.state.manager = manager
        await manager.start()
    except KeyboardInterrupt:
        logger.info("operator_startup_interrupted")
        raise
    except Exception as e:
        logger.error("operator_startup_failed", error=str(e))
        raise

    logger.info("operator_started", version=settings.app_version)

    yield

    # Shutdown
    logger.info("operator_shutting_down")

    try:
        await manager.stop()
    except Exception as e:
        logger.error("controller_manager_stop_error", error=str(e))

    try:
        await gateway.close()
    except Exception as e:
        logger.error("gateway_close_error", error=str(e))

    try:
        await store.close()
    except Exception as e:
        logger.error("store_close_error", error=str(e))

    try:
        await RedisConnection.close()
    except Exception as e:
        logger.error("redis_close_error", error=str(e))

    logger.info("operator_shutdown_complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Reconciles managed database clusters, databases and users",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)


@app.exception_handler(OperatorException)
async def operator_exception_handler(request: Request, exc: OperatorException) -> JSONResponse:
    """Handle operator exceptions raised while serving probes."""
    logger.error(
        "operator_exception",
        path=request.url.path,
        method=request.method,
        error=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "details": exc.details,
                "status_code": exc.status_code,
            }
        },
    )


# Initialize Prometheus metrics
if settings.prometheus_enabled:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")


# Include routers
app.include_router(health.router, prefix="/health", tags=["Health"])


if __name__ == "__main__":
    import uvicorn

    try:
        uvicorn.run(
            "dbaas_operator.main:app",
            host=settings.probe_host,
            port=settings.probe_port,
            log_level=settings.log_level.lower(),
        )
    except (KeyboardInterrupt, SystemExit):
        logger.info("operator_stopped")
    finally:
        sys.exit(0)
