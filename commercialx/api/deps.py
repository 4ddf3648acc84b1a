"""FastAPI dependency injection.

Services are built lazily on first use and shared for the life of the
process; ``close_clients`` is called from the app lifespan on shutdown.
"""

from functools import lru_cache

from commercialx.config import get_settings
from commercialx.services.cache import ExpiringCache
from commercialx.services.catalog import CatalogResolver
from commercialx.services.catalog_store import CatalogStore, SupabaseCatalogStore
from commercialx.services.compatibility import CompatibilityCalculator
from commercialx.services.enrichment import VehicleEnrichmentService
from commercialx.services.epa import EPAClient
from commercialx.services.fuzzy_match import FuzzyMatchConfig
from commercialx.services.listing import ListingOrchestrator, StoreListingAuthorizer
from commercialx.services.nhtsa import NHTSAClient


@lru_cache
def get_match_config() -> FuzzyMatchConfig:
    return get_settings().fuzzy_match_config()


@lru_cache
def get_store() -> CatalogStore:
    return SupabaseCatalogStore()


@lru_cache
def get_calculator() -> CompatibilityCalculator:
    return CompatibilityCalculator(get_match_config())


@lru_cache
def get_orchestrator() -> ListingOrchestrator:
    store = get_store()
    return ListingOrchestrator(
        store=store,
        resolver=CatalogResolver(store, get_match_config()),
        calculator=get_calculator(),
        authorizer=StoreListingAuthorizer(store),
        step_timeout=get_settings().listing_step_timeout_seconds,
    )


@lru_cache
def get_enrichment_service() -> VehicleEnrichmentService:
    settings = get_settings()
    return VehicleEnrichmentService(
        registry=NHTSAClient(settings.nhtsa_base_url, settings.upstream_timeout_seconds),
        fuel_economy=EPAClient(settings.epa_base_url, settings.upstream_timeout_seconds),
        cache=ExpiringCache(
            maxsize=settings.enrichment_cache_size,
            default_ttl=settings.enrichment_cache_ttl,
        ),
    )


async def close_clients() -> None:
    """Close upstream HTTP clients if they were ever created."""
    if get_enrichment_service.cache_info().currsize == 0:
        return
    service = get_enrichment_service()
    await service.registry.close()
    if service.fuel_economy is not None:
        await service.fuel_economy.close()
    get_enrichment_service.cache_clear()
