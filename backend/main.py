"""FamBam - Family Tree Backend.

FastAPI server exposing family members, relationships, generation levels and
the couple-centric tree hierarchy.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from family_models import (
    FamilyStats,
    GedcomUploadResponse,
    GenerationFixResponse,
    GenerationSummary,
    HierarchyTree,
    LineageEntry,
    MarriageCreate,
    MarriageEdge,
    MarriageUpdate,
    MemberCreate,
    MemberUpdate,
    NuclearFamily,
    ParentChildCreate,
    ParentChildEdge,
    ParentChildUpdate,
    Person,
    RecalculateRequest,
    ValidationReport,
)
from family_queries import (
    DEFAULT_LINEAGE_DEPTH,
    build_families,
    compute_stats,
    get_ancestors,
    get_descendants,
    summarize_generations,
    validate_family,
)
from family_store import FamilyStore, FamilyStoreError, MemberNotFoundError, RelationshipNotFoundError
from gedcom_import import gedcom_to_records, parse_gedcom_content, parse_gedcom_file
from generations import generation_distribution
from hierarchy import build_hierarchy_for_graph
from settings import load_settings

settings = load_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("fambam")

# Global state
store = FamilyStore(root_person_id=settings.root_person_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - optionally seed the family from a GEDCOM file."""
    if settings.seed_gedcom:
        logger.info(f"Seeding family from {settings.seed_gedcom}...")
        records = gedcom_to_records(parse_gedcom_file(settings.seed_gedcom))
        store.replace_all(records.people, records.parent_child_edges, records.marriages)
        logger.info(f"✓ Seeded {len(records.people)} family members")

    yield


# Create FastAPI app
app = FastAPI(
    title="FamBam",
    description="Family tree backend with generation assignment and hierarchy building",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FamilyStoreError)
async def family_store_error_handler(request: Request, exc: FamilyStoreError):
    """Map rejected store operations to HTTP errors."""
    status_code = 404 if isinstance(exc, (MemberNotFoundError, RelationshipNotFoundError)) else 400
    logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Endpoints

@app.get("/health")
def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "memberCount": len(store.list_people()),
    }


# ============================================================================
# Members
# ============================================================================

@app.get("/members", response_model=list[Person])
def list_members():
    """Get all family members, ordered by first name."""
    members = sorted(store.list_people(), key=lambda m: (m.first_name.lower(), m.id))
    logger.info(f"Returning {len(members)} family members")
    return members


@app.post("/members", response_model=Person, status_code=201)
def add_member(member: MemberCreate):
    return store.add_member(member)


@app.get("/members/{member_id}", response_model=Person)
def get_member(member_id: int):
    return store.get_member(member_id)


@app.put("/members/{member_id}", response_model=Person)
def update_member(member_id: int, member: MemberUpdate):
    return store.update_member(member_id, member)


@app.delete("/members/{member_id}")
def delete_member(member_id: int):
    store.delete_member(member_id)
    return {"message": "Family member deleted successfully"}


@app.get("/members/{member_id}/ancestors", response_model=list[LineageEntry])
def member_ancestors(member_id: int, generations: int = Query(default=DEFAULT_LINEAGE_DEPTH, ge=1, le=50)):
    """Get ancestors of a member, up to ``generations`` levels."""
    store.get_member(member_id)
    return get_ancestors(store.snapshot(), member_id, generations)


@app.get("/members/{member_id}/descendants", response_model=list[LineageEntry])
def member_descendants(member_id: int, generations: int = Query(default=DEFAULT_LINEAGE_DEPTH, ge=1, le=50)):
    """Get descendants of a member, up to ``generations`` levels."""
    store.get_member(member_id)
    return get_descendants(store.snapshot(), member_id, generations)


# ============================================================================
# Relationships
# ============================================================================

@app.get("/relationships/parent-child", response_model=list[ParentChildEdge])
def list_parent_child():
    return store.list_parent_child_edges()


@app.post("/relationships/parent-child", response_model=ParentChildEdge, status_code=201)
def add_parent_child(relationship: ParentChildCreate):
    """Add a parent-child relationship; generation levels are recalculated."""
    logger.info(f"Adding parent-child relationship {relationship.parent_id} -> {relationship.child_id}")
    return store.add_parent_child(relationship)


@app.put("/relationships/parent-child/{relationship_id}", response_model=ParentChildEdge)
def update_parent_child(relationship_id: int, relationship: ParentChildUpdate):
    return store.update_parent_child(relationship_id, relationship)


@app.delete("/relationships/parent-child/{relationship_id}")
def delete_parent_child(relationship_id: int):
    store.delete_parent_child(relationship_id)
    return {"message": "Parent-child relationship deleted successfully"}


@app.get("/marriages", response_model=list[MarriageEdge])
def list_marriages():
    return store.list_marriage_edges()


@app.post("/marriages", response_model=MarriageEdge, status_code=201)
def add_marriage(marriage: MarriageCreate):
    """Add a marriage; generation levels are recalculated."""
    logger.info(f"Adding marriage {marriage.spouse1_id} & {marriage.spouse2_id}")
    return store.add_marriage(marriage)


@app.put("/marriages/{marriage_id}", response_model=MarriageEdge)
def update_marriage(marriage_id: int, marriage: MarriageUpdate):
    return store.update_marriage(marriage_id, marriage)


@app.delete("/marriages/{marriage_id}")
def delete_marriage(marriage_id: int):
    store.delete_marriage(marriage_id)
    return {"message": "Marriage deleted successfully"}


# ============================================================================
# Tree
# ============================================================================

@app.get("/tree/hierarchy", response_model=HierarchyTree)
def get_tree_hierarchy():
    """Get the family tree as root couple, children row and generation groups."""
    graph = store.snapshot()
    tree = build_hierarchy_for_graph(graph, graph.stored_generations())
    logger.info(
        f"Built hierarchy with {tree.total_members} members over {tree.total_generations} generations"
    )
    return tree


@app.get("/tree/generations", response_model=list[GenerationSummary])
def get_tree_generations():
    graph = store.snapshot()
    return summarize_generations(graph, graph.stored_generations())


@app.get("/tree/validate", response_model=ValidationReport)
def validate_tree():
    """Report data-quality problems such as cycles or impossible dates."""
    warnings = validate_family(store.snapshot())
    if warnings:
        logger.info(f"Family data has {len(warnings)} validation warnings")
    return ValidationReport(warnings=warnings)


@app.get("/stats", response_model=FamilyStats)
def get_stats():
    graph = store.snapshot()
    return compute_stats(graph, graph.stored_generations())


@app.get("/families", response_model=list[NuclearFamily])
def get_families():
    """Get nuclear families (marriages with their shared children, and single parents)."""
    graph = store.snapshot()
    return build_families(graph, graph.stored_generations())


def _recalculate(request: RecalculateRequest | None, message: str) -> GenerationFixResponse:
    if request is not None and request.root_person_id is not None:
        generations = store.set_root_person(request.root_person_id)
    else:
        generations = store.recalculate_generations()
    return GenerationFixResponse(
        message=message,
        generation_distribution=generation_distribution(generations),
        members_by_generation=summarize_generations(store.snapshot(), generations),
    )


@app.post("/recalculate-generations", response_model=GenerationFixResponse)
def recalculate_generations(request: RecalculateRequest | None = None):
    """Recalculate generation levels for all family members."""
    logger.info("Manually recalculating generation levels for all members")
    return _recalculate(request, "Generation levels recalculated successfully")


@app.post("/fix-generations", response_model=GenerationFixResponse)
def fix_generations(request: RecalculateRequest | None = None):
    """Reset and rebuild every generation level from the relationship graph."""
    logger.info("Starting generation fix process...")
    return _recalculate(request, "Generations fixed successfully!")


# ============================================================================
# GEDCOM import
# ============================================================================

@app.post("/upload-gedcom", response_model=GedcomUploadResponse)
async def upload_gedcom(file: UploadFile = File(...)):
    """Upload a GEDCOM file, replacing the current family."""
    logger.info(f"Received GEDCOM file upload: {file.filename}")

    if not file.filename or not file.filename.endswith(('.ged', '.gedcom')):
        logger.warning(f"Invalid file type: {file.filename}")
        raise HTTPException(status_code=400, detail="File must be a GEDCOM file (.ged or .gedcom)")

    content = await file.read()
    logger.debug(f"Read {len(content)} bytes from file")
    try:
        content_str = content.decode('utf-8')
    except UnicodeDecodeError:
        logger.info("UTF-8 decode failed, trying latin-1 encoding")
        content_str = content.decode('latin-1')

    try:
        logger.info("Parsing GEDCOM content...")
        records = gedcom_to_records(parse_gedcom_content(content_str))
    except Exception as e:
        logger.error(f"Failed to parse GEDCOM file: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Failed to parse GEDCOM file: {str(e)}")

    await run_in_threadpool(store.replace_all, records.people, records.parent_child_edges, records.marriages)
    logger.info(f"Successfully imported GEDCOM file with {len(records.people)} individuals")

    return GedcomUploadResponse(
        message=f"Successfully imported GEDCOM file: {file.filename}",
        individual_count=len(records.people),
        parent_child_count=len(records.parent_child_edges),
        marriage_count=len(records.marriages),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
