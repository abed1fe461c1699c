"""HTTP API for the QIG search daemon."""

import asyncio
import json

from aiohttp import web
from loguru import logger

from .error_handling import (
    BatchValidationError, DerivationError, DuplicateTargetError,
    OrchestratorTimeoutError, OrchestratorUnavailableError,
    SearchAlreadyRunningError, ValidationError
)
from .export import candidates_to_csv, export_filename
from .metrics import LatencyTimer
from .phrases import KNOWN_PHRASES


def create_api_app(daemon) -> web.Application:
    """Create the aiohttp application with routes."""
    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app['daemon'] = daemon

    # Core evaluation
    app.router.add_post('/test-phrase', handle_test_phrase)
    app.router.add_post('/batch-test', handle_batch_test)
    app.router.add_get('/candidates', handle_get_candidates)
    app.router.add_delete('/candidates', handle_clear_candidates)
    app.router.add_get('/candidates/export', handle_export_candidates)
    app.router.add_get('/known-phrases', handle_known_phrases)
    app.router.add_post('/generate-random', handle_generate_random)

    # Background sessions
    app.router.add_post('/search/start', handle_search_start)
    app.router.add_post('/search/stop', handle_search_stop)
    app.router.add_get('/search/status', handle_search_status)

    # Administration
    app.router.add_get('/targets', handle_list_targets)
    app.router.add_post('/targets', handle_add_target)
    app.router.add_delete('/targets/{id}', handle_remove_target)
    app.router.add_get('/verify-crypto', handle_verify_crypto)
    app.router.add_get('/orchestrator/health', handle_orchestrator_health)

    # Operations
    app.router.add_get('/status', handle_status)
    app.router.add_get('/health', handle_health)
    app.router.add_get('/metrics', handle_metrics)
    app.router.add_post('/shutdown', handle_shutdown)

    return app


@web.middleware
async def cors_middleware(request: web.Request, handler):
    response = await handler(request)
    response.headers['Access-Control-Allow-Origin'] = '*'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, DELETE, OPTIONS'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
    return response


def error_response(code: str, message: str, status: int, **extra) -> web.Response:
    body = {'error': {'code': code, 'message': message}}
    body['error'].update(extra)
    return web.json_response(body, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Map core exceptions onto HTTP status codes."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except BatchValidationError as e:
        return error_response('invalid_request', str(e), 400, **e.to_dict())
    except ValidationError as e:
        return error_response('invalid_request', str(e), 400)
    except SearchAlreadyRunningError as e:
        return error_response('conflict', str(e), 409)
    except DuplicateTargetError as e:
        return error_response('conflict', str(e), 409)
    except OrchestratorUnavailableError as e:
        return error_response('unavailable', str(e), 503)
    except OrchestratorTimeoutError as e:
        return error_response('timeout', str(e), 504)
    except DerivationError as e:
        logger.error(f"{request.path} derivation error: {e}")
        return error_response('derivation_failed', str(e), 500)
    except Exception as e:
        logger.exception(f"{request.path} error: {e}")
        return error_response('internal_error', str(e), 500)


async def read_json(request: web.Request) -> dict:
    try:
        data = await request.json()
    except json.JSONDecodeError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_phrase_list(data: dict, key: str = 'phrases') -> list:
    phrases = data.get(key)
    if not isinstance(phrases, list) or not all(isinstance(p, str) for p in phrases):
        raise ValidationError(f"{key} must be a list of strings")
    return phrases


async def handle_test_phrase(request: web.Request) -> web.Response:
    """Evaluate one phrase against the targets."""
    daemon = request.app['daemon']
    data = await read_json(request)

    phrase = data.get('phrase')
    if not isinstance(phrase, str):
        raise ValidationError("phrase is required")

    with LatencyTimer("http.test_phrase", daemon.metrics):
        result = await daemon.controller.evaluate_phrase(phrase)

    return web.json_response(result.to_dict())


async def handle_batch_test(request: web.Request) -> web.Response:
    """Run a batch session to completion and report the outcome."""
    daemon = request.app['daemon']
    data = await read_json(request)
    phrases = require_phrase_list(data)

    with LatencyTimer("http.batch_test", daemon.metrics):
        outcome = await daemon.controller.run_batch(phrases)

    return web.json_response(outcome.to_dict())


async def handle_get_candidates(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    return web.json_response([c.to_dict() for c in daemon.store.list()])


async def handle_clear_candidates(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    daemon.store.clear()
    return web.json_response({'status': 'cleared'})


async def handle_export_candidates(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    response = web.Response(
        text=candidates_to_csv(daemon.store.list()),
        content_type='text/csv'
    )
    response.headers['Content-Disposition'] = f'attachment; filename="{export_filename()}"'
    return response


async def handle_known_phrases(request: web.Request) -> web.Response:
    return web.json_response({'phrases': KNOWN_PHRASES})


async def handle_generate_random(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    data = await read_json(request)

    count = data.get('count')
    if not isinstance(count, int) or isinstance(count, bool) or not 1 <= count <= 100:
        raise ValidationError("count must be an integer between 1 and 100")

    return web.json_response({'phrases': daemon.generator.generate_many(count)})


async def handle_search_start(request: web.Request) -> web.Response:
    """Start a background session over supplied or known phrases."""
    daemon = request.app['daemon']
    data = await read_json(request)

    source = data.get('source', 'batch')
    if source == 'known':
        phrases = KNOWN_PHRASES
    elif source == 'batch':
        phrases = require_phrase_list(data)
    else:
        raise ValidationError("source must be 'batch' or 'known'")

    daemon.controller.start(phrases)
    return web.json_response(
        {'status': 'started', 'total': len(phrases)},
        status=202
    )


async def handle_search_stop(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    stopping = daemon.controller.stop()
    return web.json_response({'status': 'stopping' if stopping else 'idle'})


async def handle_search_status(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    return web.json_response(daemon.controller.status())


async def handle_list_targets(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    return web.json_response({'targets': [t.to_dict() for t in daemon.targets.list()]})


async def handle_add_target(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    data = await read_json(request)

    address = data.get('address')
    label = data.get('label')
    if not isinstance(address, str):
        raise ValidationError("address is required")

    target = daemon.targets.add(address, label)
    return web.json_response(target.to_dict(), status=201)


async def handle_remove_target(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    target_id = request.match_info['id']

    try:
        target = daemon.targets.remove(target_id)
    except KeyError:
        return error_response('not_found', f"Unknown target: {target_id}", 404)

    return web.json_response({'status': 'removed', 'target': target.to_dict()})


async def handle_verify_crypto(request: web.Request) -> web.Response:
    """Run the deriver self-test."""
    daemon = request.app['daemon']
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, daemon.deriver.self_test)
    return web.json_response(result, status=200 if result.get('success') else 500)


async def handle_orchestrator_health(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    if daemon.orchestrator is None:
        return web.json_response({'enabled': False, 'available': False})

    available = await daemon.orchestrator.check_health()
    return web.json_response({
        'enabled': True,
        'available': available,
        'health': daemon.orchestrator.health.to_dict()
    })


async def handle_status(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    return web.json_response(daemon.get_status())


async def handle_health(request: web.Request) -> web.Response:
    daemon = request.app['daemon']
    return web.json_response({
        'status': 'ok',
        'search_state': daemon.controller.state.value,
        'targets': len(daemon.targets),
    })


async def handle_metrics(request: web.Request) -> web.Response:
    """Export metrics."""
    format = request.query.get('format', 'json')
    metrics = request.app["daemon"].metrics

    if format == 'prometheus':
        return web.Response(
            text=metrics.export_metrics('prometheus'),
            content_type='text/plain'
        )
    if format == 'json':
        return web.Response(
            text=metrics.export_metrics('json'),
            content_type='application/json'
        )
    raise ValidationError(f"Unknown format: {format}")


async def handle_shutdown(request: web.Request) -> web.Response:
    """Shutdown the daemon."""
    daemon = request.app['daemon']
    logger.info("Shutdown requested via API")

    # Schedule shutdown after response
    async def shutdown():
        await asyncio.sleep(0.5)
        await daemon.stop()

    asyncio.create_task(shutdown())
    return web.json_response({'status': 'shutting down'})
