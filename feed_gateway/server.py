import logging
from contextlib import asynccontextmanager
from typing import Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from feed_gateway import routes
from feed_gateway.auth import CORS_HEADERS, cors_middleware
from feed_gateway.errors import GatewayError
from feed_gateway.utils import mask_token
from feed_gateway.utils.exception_logging import log_exception_with_details
from feed_gateway.vars import (
    AUTH_TOKEN,
    HOST,
    LOG_LEVEL,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    PORT,
    SERVER_URL,
    SERVICE_NAME,
)

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"RSS proxy starting, SERVER_URL: {SERVER_URL}")
    if AUTH_TOKEN:
        logger.info(mask_token(f"Auth: enabled (token: {AUTH_TOKEN})", AUTH_TOKEN))
    else:
        logger.info("Auth: disabled")

    # Mirror probing must not hold up readiness; requests use the default until it finishes
    routes.mirror_resolver.start_selection()
    yield
    await routes.mirror_resolver.stop()


app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
instrumentator = Instrumentator()

instrumentator.instrument(app).expose(app)


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streaming responses.
    Image streams otherwise produce one span per forwarded chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app)

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    log_exception_with_details(
        logger, f"[{request.url.path}]", exc, target_url=exc.target_url, level=level
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log_exception_with_details(logger, f"[{request.url.path}]", exc)
    # Runs in the outermost error middleware, outside cors_middleware
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error"},
        headers=CORS_HEADERS,
    )


app.middleware("http")(cors_middleware)
app.include_router(routes.router)


def run() -> None:
    uvicorn.run(app, host=HOST, port=int(PORT), log_level=LOG_LEVEL)


if __name__ == "__main__":
    run()
