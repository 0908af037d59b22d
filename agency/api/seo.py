from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, Response
from sqlmodel import Session

from agency.core.database import get_db
from agency.services import seo

router = APIRouter(tags=["seo"])


@router.get("/robots.txt", response_class=PlainTextResponse)
def robots_txt(db: Session = Depends(get_db)):
    body = seo.render_robots_txt(db)
    headers = {"Cache-Control": "no-store"}
    if body is None:
        return PlainTextResponse("Not found", status_code=404, headers=headers)
    return PlainTextResponse(body, headers=headers)


@router.get("/sitemap.xml")
def sitemap_xml(db: Session = Depends(get_db)):
    body = seo.render_sitemap_xml(db)
    if body is None:
        return PlainTextResponse("Sitemap not configured", status_code=404, headers={"Cache-Control": "no-store"})
    return Response(
        content=body,
        media_type="application/xml",
        headers={"Cache-Control": "public, max-age=300"},
    )


@router.get("/schema-jsonld")
def schema_jsonld(response: Response, db: Session = Depends(get_db)):
    response.headers["Cache-Control"] = "no-store"
    return seo.render_jsonld(db)


@router.get("/api/public/verification")
def verification(db: Session = Depends(get_db)):
    return seo.public_verification(db)
