import json
import logging

import azure.functions as func

from schema_agent import api
from schema_agent.llm.generator import SchemaGenerator

app = func.FunctionApp()


# ---------------------------------------------------------------
# 1) 공통 응답
# ---------------------------------------------------------------
def _json(payload: dict, status: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(payload, ensure_ascii=False),
        status_code=status,
        mimetype="application/json",
    )


def _body(req: func.HttpRequest):
    """JSON body, or None when the body is not valid JSON."""
    try:
        return req.get_json()
    except ValueError:
        logging.exception("BAD_JSON")
        return None


def _generator() -> SchemaGenerator:
    return SchemaGenerator()


# ---------------------------------------------------------------
# 2) HTTP 엔드포인트 (route prefix: /api)
# ---------------------------------------------------------------
@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health(req: func.HttpRequest) -> func.HttpResponse:
    return _json(*api.health())


@app.route(route="generate-schema", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def generate_schema(req: func.HttpRequest) -> func.HttpResponse:
    logging.info("generate-schema called")
    body = _body(req)
    if body is None:
        return _json(*api.error_payload("BAD_JSON", "Request body must be valid JSON"))
    try:
        return _json(*api.handle_generate(body, _generator()))
    except Exception as e:
        logging.exception("GENERATION_FAILED (unexpected)")
        return _json(*api.error_payload("GENERATION_FAILED", "Schema generation failed", details=str(e), status=500))


@app.route(route="refine-schema", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def refine_schema(req: func.HttpRequest) -> func.HttpResponse:
    logging.info("refine-schema called")
    body = _body(req)
    if body is None:
        return _json(*api.error_payload("BAD_JSON", "Request body must be valid JSON"))
    try:
        return _json(*api.handle_refine(body, _generator()))
    except Exception as e:
        logging.exception("REFINEMENT_FAILED (unexpected)")
        return _json(*api.error_payload("REFINEMENT_FAILED", "Schema refinement failed", details=str(e), status=500))


@app.route(route="compile", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def compile_schema(req: func.HttpRequest) -> func.HttpResponse:
    body = _body(req)
    if body is None:
        return _json(*api.error_payload("BAD_JSON", "Request body must be valid JSON"))
    return _json(*api.handle_compile(body))
