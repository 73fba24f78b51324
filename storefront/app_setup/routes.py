"""
Routes simples (hors routers) pour le front statique.
- /env.js: window.__ENV avec les valeurs publiques (Supabase anon, clé publiable Stripe, BASE_URL).
- /api/config: mêmes valeurs en JSON.
- /favicon.ico: pas de contenu (204) pour éviter des 404 dans les logs.
Aucune clé secrète (service-role, Stripe secret, webhook secret) n’est jamais exposée.
"""
import json
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse, Response
from starlette.status import HTTP_204_NO_CONTENT

from storefront.config import Settings, get_app_settings

def register_routes(app: FastAPI) -> None:
    @app.get("/env.js", include_in_schema=False)
    def env_js(settings: Settings = Depends(get_app_settings)):
        payload = json.dumps(settings.public_client_env())
        return Response(
            content=f"window.__ENV = {payload};",
            media_type="application/javascript; charset=utf-8",
            headers={"Cache-Control": "no-store"},
        )

    @app.get("/api/config", tags=["Config"])
    def public_config(settings: Settings = Depends(get_app_settings)):
        env = settings.public_client_env()
        return JSONResponse({
            "supabaseUrl": env["SUPABASE_URL"],
            "supabaseAnonKey": env["SUPABASE_ANON_KEY"],
            "stripePublishableKey": env["STRIPE_PUBLISHABLE_KEY"],
            "baseUrl": env["BASE_URL"],
        })

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=HTTP_204_NO_CONTENT)
