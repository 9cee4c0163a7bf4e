import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api_models import (
    AddStepRequest,
    EvaluateRuleRequest,
    EvaluateRuleResponse,
    PriceRequest,
    QuoteRequest,
    ValidationErrorResponse,
    VisibleSectionsRequest,
)
from .campaigns import PriceBreakdown, calculate_campaign_price
from .condition_evaluator import evaluate_rule
from .config import Settings, get_settings
from .db import Database
from .exceptions import (
    ConfigurationError,
    DatabaseOperationError,
    FormBuilderValidationError,
    NotFoundError,
    PublishConflictError,
)
from .form_builder import ConvertResult, ValidationResult, convert_to_product_categories
from .form_builder_service import FormBuilderService
from .form_schema import Campaign, FormBuilderData, ShootingCategory
from .labels import label_catalogue
from .pricing import resolve_selection
from .request_context import configure_logging, get_request_id, set_request_id
from .section_filter import VisibleSections, group_visible_sections
from .simulator_service import Quote, SimulatorData, SimulatorService

logger = logging.getLogger(__name__)


def _with_request_id(message: str) -> str:
    request_id = get_request_id()
    if request_id:
        return f"[Request ID: {request_id}] {message}"
    return message


def create_app(settings: Settings | None = None, db: Database | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    db = db or Database(settings.sqlite_path)
    simulator = SimulatorService(db=db, tax_rate=settings.tax_rate)
    form_builder = FormBuilderService(db=db)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await db.init_schema()
        yield

    app = FastAPI(title="Studio Pricing Simulator API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID to context for all requests."""
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(FormBuilderValidationError)
    async def form_builder_validation_handler(request: Request, exc: FormBuilderValidationError):
        body = ValidationErrorResponse(
            detail=_with_request_id("Form builder draft is invalid"), errors=exc.errors
        )
        return JSONResponse(status_code=422, content=body.model_dump())

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=422, content={"detail": _with_request_id(str(exc))})

    @app.exception_handler(PublishConflictError)
    async def publish_conflict_handler(request: Request, exc: PublishConflictError):
        return JSONResponse(status_code=409, content={"detail": _with_request_id(str(exc))})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": _with_request_id(str(exc))})

    @app.exception_handler(DatabaseOperationError)
    async def database_error_handler(request: Request, exc: DatabaseOperationError):
        logger.error("Database operation failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"detail": _with_request_id(f"Database operation failed: {exc}")},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/labels")
    async def labels():
        return label_catalogue()

    # Stateless evaluation

    @app.post("/api/rules/evaluate", response_model=EvaluateRuleResponse)
    async def evaluate(body: EvaluateRuleRequest):
        return EvaluateRuleResponse(result=evaluate_rule(body.rule, body.values))

    @app.post("/api/sections/visible", response_model=VisibleSections)
    async def visible_sections(body: VisibleSectionsRequest):
        return group_visible_sections(body.categories, body.values)

    @app.post("/api/price", response_model=PriceBreakdown)
    async def price(body: PriceRequest):
        return calculate_campaign_price(
            resolve_selection(body.selected_item_ids, body.items),
            body.campaigns,
            shooting_category_id=body.shooting_category_id,
            today=body.today,
            tax_rate=settings.tax_rate,
        )

    # Customer simulator

    @app.get("/api/shops/{shop_id}/shooting-categories", response_model=list[ShootingCategory])
    async def shooting_categories(shop_id: int):
        return await db.list_shooting_categories(shop_id)

    @app.get("/api/shops/{shop_id}/simulator/{shooting_category_id}", response_model=SimulatorData)
    async def simulator_data(shop_id: int, shooting_category_id: int):
        return await simulator.load(shop_id, shooting_category_id)

    @app.post("/api/shops/{shop_id}/simulator/{shooting_category_id}/quote", response_model=Quote)
    async def quote(shop_id: int, shooting_category_id: int, body: QuoteRequest):
        return await simulator.quote(
            shop_id, shooting_category_id, body.values, body.selected_item_ids
        )

    # Admin form builder

    prefix = "/api/admin/shops/{shop_id}/form-builder/{shooting_category_id}"

    @app.get(prefix, response_model=FormBuilderData, response_model_by_alias=True)
    async def get_draft(shop_id: int, shooting_category_id: int):
        return await form_builder.load(shop_id, shooting_category_id)

    @app.put(prefix, response_model=FormBuilderData, response_model_by_alias=True)
    async def put_draft(shop_id: int, shooting_category_id: int, body: FormBuilderData):
        if body.shooting_category_id != shooting_category_id:
            raise HTTPException(
                status_code=400,
                detail=_with_request_id("shootingCategoryId does not match the URL"),
            )
        return await form_builder.save(body.model_copy(update={"shop_id": shop_id}))

    @app.post(prefix + "/steps", response_model=FormBuilderData, response_model_by_alias=True)
    async def add_step(shop_id: int, shooting_category_id: int, body: AddStepRequest):
        return await form_builder.add_step(
            shop_id, shooting_category_id, body.type, body.category, body.condition
        )

    @app.delete(
        prefix + "/steps/{index}", response_model=FormBuilderData, response_model_by_alias=True
    )
    async def delete_step(shop_id: int, shooting_category_id: int, index: int):
        return await form_builder.remove_step(shop_id, shooting_category_id, index)

    @app.get(prefix + "/validate", response_model=ValidationResult)
    async def validate(shop_id: int, shooting_category_id: int):
        return await form_builder.validate(shop_id, shooting_category_id)

    @app.get(prefix + "/preview", response_model=ConvertResult)
    async def preview(shop_id: int, shooting_category_id: int):
        data = await form_builder.load(shop_id, shooting_category_id)
        return convert_to_product_categories(data)

    @app.post(prefix + "/publish", response_model=ConvertResult)
    async def publish(shop_id: int, shooting_category_id: int):
        return await form_builder.publish(shop_id, shooting_category_id)

    # Admin catalogue

    @app.post("/api/admin/shops/{shop_id}/shooting-categories", response_model=ShootingCategory)
    async def create_shooting_category(shop_id: int, body: ShootingCategory):
        return await db.create_shooting_category(body.model_copy(update={"shop_id": shop_id}))

    @app.get("/api/admin/shops/{shop_id}/campaigns", response_model=list[Campaign])
    async def list_campaigns(shop_id: int):
        return await db.list_campaigns(shop_id)

    @app.post("/api/admin/shops/{shop_id}/campaigns", response_model=Campaign)
    async def create_campaign(shop_id: int, body: Campaign):
        return await db.create_campaign(body.model_copy(update={"shop_id": shop_id}))

    return app


app = create_app()
