from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from typing import Any, Dict
import os

app = FastAPI(title="Mock Enhancer Server", version="1.0.0")
# Simulate an outage locally or in Docker with ENHANCER_FAIL=1
FAIL = os.environ.get("ENHANCER_FAIL") == "1"

COUNTRY_ALIASES = {
    "us": "United States",
    "usa": "United States",
    "uk": "United Kingdom",
    "sg": "Singapore",
    "ky": "Cayman Islands",
}
SUPPORTED_CLASSES = {"invoice", "saas", "creator", "rental", "luxury"}


class EnhanceRequest(BaseModel):
    asset_class: str
    attributes: Dict[str, Any] = {}


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/enhance")
def enhance(body: EnhanceRequest):
    if FAIL:
        raise HTTPException(status_code=503, detail="enhancer unavailable")
    if body.asset_class not in SUPPORTED_CLASSES:
        raise HTTPException(status_code=422, detail="unsupported asset class")

    attributes = dict(body.attributes)
    country = attributes.get("country")
    if isinstance(country, str):
        attributes["country"] = COUNTRY_ALIASES.get(country.strip().lower(), country.strip())
    terms = attributes.get("payment_terms")
    if isinstance(terms, str):
        attributes["payment_terms"] = terms.strip().title()
    return {"asset_class": body.asset_class, "attributes": attributes}
