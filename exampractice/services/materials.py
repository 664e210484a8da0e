from typing import Dict, List, Optional

from exampractice.core.auth import STAFF_ROLES
from exampractice.core.backend import SqlBackend
from exampractice.core.errors import NotFound, PermissionDenied, ValidationFailed
from exampractice.services.answers import clean_text

MATERIAL_TYPES = ("lecture", "textbook", "image", "model3d", "link")
MATERIAL_COLUMNS = ("id", "title", "description", "type", "url", "subject_id", "topic_id", "created_at")

_MODEL_SUFFIXES = (".glb", ".gltf")
_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp")


def infer_kind(material: Dict) -> str:
    """How a material should be displayed: model3d, image, pdf or link."""
    if material.get("type") in ("model3d", "image"):
        return material["type"]
    url = (material.get("url") or "").lower()
    if url.endswith(_MODEL_SUFFIXES):
        return "model3d"
    if url.endswith(_IMAGE_SUFFIXES):
        return "image"
    if url.endswith(".pdf"):
        return "pdf"
    return "link"


def list_materials(backend: SqlBackend, subject_id: Optional[str] = None, topic_id: Optional[str] = None,
                   q: Optional[str] = None) -> List[Dict]:
    filters = {}
    if subject_id:
        filters["subject_id"] = subject_id
    if topic_id:
        filters["topic_id"] = topic_id
    rows = backend.select("materials", MATERIAL_COLUMNS, filters, order=["-created_at"])
    needle = (q or "").strip().lower()
    if needle:
        rows = [m for m in rows if needle in m["title"].lower() or needle in (m["description"] or "").lower()]
    return rows


def get_material(backend: SqlBackend, material_id: str) -> Dict:
    m = backend.single("materials", MATERIAL_COLUMNS, {"id": material_id})
    if not m:
        raise NotFound("Material not found")
    return dict(m, kind=infer_kind(m))


def create_material(backend: SqlBackend, role: str, title: Optional[str], url: Optional[str], type: Optional[str],
                    description: Optional[str] = None, subject_id: Optional[str] = None,
                    topic_id: Optional[str] = None) -> Dict:
    if role not in STAFF_ROLES:
        raise PermissionDenied("Managing materials requires the teacher or admin role")
    title, url, type = clean_text(title), clean_text(url), clean_text(type)
    if not title:
        raise ValidationFailed("Missing title")
    if not url:
        raise ValidationFailed("Missing material URL")
    if type not in MATERIAL_TYPES:
        raise ValidationFailed(f"Material type must be one of: {', '.join(MATERIAL_TYPES)}")
    row = backend.insert("materials", [{
        "title": title,
        "description": clean_text(description),
        "type": type,
        "url": url,
        "subject_id": subject_id or None,
        "topic_id": topic_id or None,
    }])[0]
    return get_material(backend, row["id"])
