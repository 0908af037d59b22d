"""
robots.txt, sitemap.xml, Organization/WebSite JSON-LD and site verification ids.
All of it is built from website settings; the admin normalizers raise ValueError with a user-facing message.
"""
import re
from typing import Any
from xml.sax.saxutils import escape

from sqlmodel import Session

from agency.services.public_settings import published_blog_posts
from agency.services.settings_store import get_setting, get_setting_string, json_bool

ROBOTS_KEY = "robots_txt_settings"
SITEMAP_KEY = "sitemap_settings"
SCHEMA_KEY = "schema_settings"
GSC_KEY = "gsc_verification_token"
GA4_KEY = "ga4_measurement_id"

STATIC_PAGES = ["", "/about", "/services", "/contact", "/blog"]
SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_GSC_TOKEN_RE = re.compile(r"^[A-Za-z0-9._-]{10,256}$")
_GA4_ID_RE = re.compile(r"^G-[A-Z0-9]{4,20}$")


def _str(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _as_dict(value: Any) -> dict | None:
    return value if isinstance(value, dict) else None


def _str_list(value: Any) -> list[str]:
    return [str(v) for v in value] if isinstance(value, list) else []


def normalize_paths(value: Any, label: str, max_items: int) -> list[str]:
    """Non-empty paths starting with "/", no whitespace, deduplicated in order."""
    out: list[str] = []
    for raw in value if isinstance(value, list) else []:
        v = _str(raw)
        if not v:
            continue
        if not v.startswith("/"):
            raise ValueError(f'{label} path harus diawali "/": {v}')
        if len(v) > 200:
            raise ValueError(f"{label} path terlalu panjang: {v[:40]}...")
        if re.search(r"\s", v):
            raise ValueError(f"{label} path tidak boleh mengandung spasi: {v}")
        out.append(v)
    if len(out) > max_items:
        raise ValueError(f"{label}: terlalu banyak paths (maks {max_items})")
    return list(dict.fromkeys(out))


# robots.txt

def normalize_robots_settings(incoming: Any) -> dict:
    incoming = _as_dict(incoming) or {}
    user_agent = _str(incoming.get("user_agent", "*")) or "*"
    if len(user_agent) > 200:
        raise ValueError("User Agent terlalu panjang (maks 200 karakter)")
    sitemap = _str(incoming.get("sitemap"))
    if not sitemap:
        raise ValueError("Sitemap URL wajib diisi")
    if not _HTTP_URL_RE.match(sitemap):
        raise ValueError("Sitemap URL harus diawali http:// atau https://")
    if len(sitemap) > 500:
        raise ValueError("Sitemap URL terlalu panjang")
    allow = normalize_paths(incoming.get("allow"), "Allow", 500)
    return {
        "enabled": json_bool(incoming.get("enabled"), True),
        "user_agent": user_agent,
        "allow": allow or ["/"],
        "disallow": normalize_paths(incoming.get("disallow"), "Disallow", 500),
        "sitemap": sitemap,
    }


def robots_settings_view(value: Any) -> dict | None:
    s = _as_dict(value)
    if s is None:
        return None
    return {
        "enabled": json_bool(s.get("enabled"), True),
        "user_agent": str(s.get("user_agent") or "*"),
        "allow": _str_list(s.get("allow")) if isinstance(s.get("allow"), list) else ["/"],
        "disallow": _str_list(s.get("disallow")),
        "sitemap": str(s.get("sitemap") or ""),
    }


def build_robots_txt(settings: dict) -> str:
    lines = [f"User-agent: {_str(settings.get('user_agent')) or '*'}"]
    allow = [p for p in _str_list(settings.get("allow")) if p.strip()] or ["/"]
    lines += [f"Allow: {p.strip()}" for p in allow]
    lines += [f"Disallow: {p.strip()}" for p in _str_list(settings.get("disallow")) if p.strip()]
    sitemap = _str(settings.get("sitemap"))
    if sitemap:
        lines.append(f"Sitemap: {sitemap}")
    return "\n".join(lines) + "\n"


def render_robots_txt(db: Session) -> str | None:
    """None when robots.txt is not configured or disabled."""
    s = _as_dict(get_setting(db, ROBOTS_KEY))
    if s is None or not json_bool(s.get("enabled"), True):
        return None
    return build_robots_txt(s)


# sitemap.xml

def normalize_sitemap_settings(incoming: Any) -> dict:
    incoming = _as_dict(incoming) or {}
    base_url = _str(incoming.get("base_url"))
    if not base_url:
        raise ValueError("Base URL wajib diisi")
    if not _HTTP_URL_RE.match(base_url):
        raise ValueError("Base URL harus diawali http:// atau https://")
    return {
        "base_url": base_url.rstrip("/"),
        "include_static_pages": json_bool(incoming.get("include_static_pages"), True),
        "include_blog_posts": json_bool(incoming.get("include_blog_posts"), True),
        "custom_paths": normalize_paths(incoming.get("custom_paths"), "Custom", 200),
    }


def sitemap_settings_view(value: Any) -> dict | None:
    s = _as_dict(value)
    if s is None:
        return None
    return {
        "base_url": str(s.get("base_url") or ""),
        "include_static_pages": json_bool(s.get("include_static_pages"), True),
        "include_blog_posts": json_bool(s.get("include_blog_posts"), True),
        "custom_paths": _str_list(s.get("custom_paths")),
    }


def xml_escape(value: str) -> str:
    return escape(value, {'"': "&quot;", "'": "&apos;"})


def sitemap_entries(settings: dict, posts: list | None = None) -> list[dict]:
    """[{loc, lastmod}] in output order, deduplicated by loc."""
    base_url = _str(settings.get("base_url")).rstrip("/")
    paths: list[tuple[str, str | None]] = []
    if json_bool(settings.get("include_static_pages"), True):
        paths += [(p, None) for p in STATIC_PAGES]
    paths += [(p, None) for p in _str_list(settings.get("custom_paths"))]
    if json_bool(settings.get("include_blog_posts"), True):
        for post in posts or []:
            lastmod = post.updated_at.isoformat() if post.updated_at else None
            paths.append((f"/blog/{post.slug}", lastmod))

    entries: list[dict] = []
    seen: set[str] = set()
    for path, lastmod in paths:
        path = path.strip()
        if path and not path.startswith("/"):
            continue
        loc = f"{base_url}{path}"
        if loc in seen:
            continue
        seen.add(loc)
        entries.append({"loc": loc, "lastmod": lastmod})
    return entries


def build_sitemap_xml(entries: list[dict]) -> str:
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<urlset xmlns="{SITEMAP_NS}">']
    for e in entries:
        lines.append("  <url>")
        lines.append(f"    <loc>{xml_escape(e['loc'])}</loc>")
        if e.get("lastmod"):
            lines.append(f"    <lastmod>{xml_escape(e['lastmod'])}</lastmod>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def render_sitemap_xml(db: Session) -> str | None:
    """None when no base URL is configured."""
    s = _as_dict(get_setting(db, SITEMAP_KEY))
    if s is None or not _str(s.get("base_url")):
        return None
    posts = published_blog_posts(db) if json_bool(s.get("include_blog_posts"), True) else []
    return build_sitemap_xml(sitemap_entries(s, posts))


# JSON-LD

def _schema_name(value: Any, label: str) -> str:
    v = _str(value)
    if not v:
        raise ValueError(f"{label} wajib diisi")
    if len(v) > 200:
        raise ValueError(f"{label} terlalu panjang (maks 200 karakter)")
    return v


def _schema_url(value: Any, label: str, required: bool) -> str | None:
    v = _str(value)
    if not v:
        if required:
            raise ValueError(f"{label} wajib diisi")
        return None
    if not _HTTP_URL_RE.match(v):
        raise ValueError(f"{label} harus diawali http:// atau https://")
    if len(v) > 800:
        raise ValueError(f"{label} terlalu panjang")
    return v


def _same_as(value: Any) -> list[str]:
    out: list[str] = []
    for raw in value if isinstance(value, list) else []:
        v = _str(raw)
        if not v:
            continue
        if not _HTTP_URL_RE.match(v):
            raise ValueError(f"SameAs harus berupa http(s) URL: {v}")
        if len(v) > 800:
            raise ValueError("SameAs URL terlalu panjang")
        out.append(v)
    if len(out) > 50:
        raise ValueError("SameAs terlalu banyak (maks 50)")
    return list(dict.fromkeys(out))


def normalize_schema_settings(incoming: Any) -> dict:
    incoming = _as_dict(incoming) or {}
    business_name = _schema_name(incoming.get("business_name"), "Business Name")
    site_name = _str(incoming.get("site_name")) or business_name
    return {
        "enabled": json_bool(incoming.get("enabled"), True),
        "business_name": business_name,
        "website_url": _schema_url(incoming.get("website_url"), "Website URL", True),
        "logo_url": _schema_url(incoming.get("logo_url"), "Logo URL", False),
        "same_as": _same_as(incoming.get("same_as")),
        "site_name": _schema_name(site_name, "Site Name"),
    }


def schema_settings_view(value: Any) -> dict | None:
    s = _as_dict(value)
    if s is None:
        return None
    return {
        "enabled": json_bool(s.get("enabled"), True),
        "business_name": str(s.get("business_name") or ""),
        "website_url": str(s.get("website_url") or ""),
        "logo_url": str(s["logo_url"]) if s.get("logo_url") else None,
        "same_as": _str_list(s.get("same_as")),
        "site_name": str(s.get("site_name") or ""),
    }


def build_jsonld(settings: dict | None) -> dict:
    disabled = {"enabled": False, "jsonld": []}
    if not settings or not json_bool(settings.get("enabled"), True):
        return disabled
    business_name = _str(settings.get("business_name"))
    website_url = _str(settings.get("website_url"))
    if not business_name or not website_url:
        return disabled

    org: dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": "Organization",
        "name": business_name,
        "url": website_url,
    }
    logo_url = _str(settings.get("logo_url"))
    if logo_url:
        org["logo"] = logo_url
    same_as = [u.strip() for u in _str_list(settings.get("same_as")) if u.strip()]
    if same_as:
        org["sameAs"] = same_as
    website = {
        "@context": "https://schema.org",
        "@type": "WebSite",
        "name": _str(settings.get("site_name")) or business_name,
        "url": website_url,
    }
    return {"enabled": True, "jsonld": [org, website]}


def render_jsonld(db: Session) -> dict:
    return build_jsonld(_as_dict(get_setting(db, SCHEMA_KEY)))


# Search Console / Analytics

def normalize_gsc_token(value: Any) -> str:
    v = _str(value)
    if not v:
        raise ValueError("Verification token wajib diisi")
    if not _GSC_TOKEN_RE.match(v):
        raise ValueError("Format token tidak valid")
    return v


def normalize_ga4_id(value: Any) -> str:
    v = _str(value).upper()
    if not v:
        raise ValueError("Measurement ID wajib diisi")
    if not _GA4_ID_RE.match(v):
        raise ValueError("Format Measurement ID tidak valid (contoh: G-XXXXXXXXXX)")
    return v


def public_verification(db: Session) -> dict:
    return {
        "gsc_verification_token": get_setting_string(db, GSC_KEY),
        "ga4_measurement_id": get_setting_string(db, GA4_KEY),
    }
