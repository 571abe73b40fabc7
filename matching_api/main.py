"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from matching_api.api import auth, notifications, ops, profile, sms
from matching_api.api.errors import install_error_handlers
from matching_api.infra import postgres
from matching_api.obs import init as obs_init
from matching_api.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	try:
		yield
	finally:
		await postgres.close_pool()


def create_app() -> FastAPI:
	app = FastAPI(title="Matching SMS API", version="1.0.0", lifespan=lifespan)
	origins = list(settings.cors_allow_origins) or ["*"]
	app.add_middleware(
		CORSMiddleware,
		allow_origins=origins,
		allow_credentials="*" not in origins,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	obs_init(app)
	install_error_handlers(app)
	app.include_router(auth.router)
	app.include_router(sms.router)
	app.include_router(profile.router)
	app.include_router(notifications.router)
	app.include_router(ops.router)
	return app


app = create_app()


if __name__ == "__main__":
	import uvicorn

	uvicorn.run("matching_api.main:app", host="0.0.0.0", port=settings.port, reload=settings.is_dev())
