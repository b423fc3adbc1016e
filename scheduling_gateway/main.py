import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scheduling_gateway.core import config
from scheduling_gateway.core.session import TokenStore
from scheduling_gateway.errors import InputValidationError, SchedulingError, join_validation_messages
from scheduling_gateway.routes import appointment_routes, auth_routes, provider_routes
from scheduling_gateway.vendor.dependencies import close_vendor_client, get_token_store

app = FastAPI(title='Scheduling API Gateway')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def configure_gateway() -> None:
    logging.basicConfig(level=config.LOG_LEVEL.upper())
    config.validate_runtime_config()
    logger.info(
        'Gateway ready to proxy requests to %s (%s)',
        config.VENDOR_API_BASE_URL,
        config.VENDOR_ENVIRONMENT,
    )


@app.on_event('shutdown')
def release_vendor_client() -> None:
    close_vendor_client()


@app.exception_handler(SchedulingError)
async def handle_scheduling_error(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status, content=exc.to_envelope())


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InputValidationError(
        'Invalid request parameters',
        error_description=join_validation_messages(exc.errors()),
    )
    return JSONResponse(status_code=error.status, content=error.to_envelope())


@app.get('/api/health')
def health(token_store: TokenStore = Depends(get_token_store)):
    return {
        'status': 'ok',
        'message': 'Backend proxy is running',
        'authenticated': token_store.is_authenticated,
    }


app.include_router(auth_routes.router, prefix='/api')
app.include_router(provider_routes.router, prefix='/api')
app.include_router(appointment_routes.router, prefix='/api')


def main() -> None:
    import uvicorn

    logger.info('Starting gateway at http://%s:%s', config.HOST, config.PORT)
    uvicorn.run('scheduling_gateway.main:app', host=config.HOST, port=config.PORT)


if __name__ == '__main__':
    main()
