# ABOUTME: Assembles stores, catalog collaborators, and jobs from settings.
# ABOUTME: Shared by the CLI commands and the background scheduler.

import logging
from dataclasses import dataclass

from shelfmirror.catalog.http import CatalogClient, HardcoverClient
from shelfmirror.catalog.lists import ListAggregator
from shelfmirror.catalog.shelf import WantToReadShelf
from shelfmirror.config import Settings
from shelfmirror.core.jobs import DedupJob, WantSyncJob
from shelfmirror.core.resolver import IdentityResolver
from shelfmirror.core.sync import LibrarySync
from shelfmirror.db.activity import ActivityLog
from shelfmirror.db.connection import Database, open_database
from shelfmirror.db.identity import IdentityMapStore
from shelfmirror.db.list_cache import ListCacheStore
from shelfmirror.db.mirror import MirrorStore
from shelfmirror.db.suggested import SuggestedStore
from shelfmirror.db.want_cache import WantCacheStore
from shelfmirror.db.wanted import WantedStore
from shelfmirror.source.calibre import CalibreSource
from shelfmirror.source.covers import CoverCache

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    db: Database
    mirror: MirrorStore
    identity_map: IdentityMapStore
    list_cache: ListCacheStore
    suggested: SuggestedStore
    wanted: WantedStore
    want_cache: WantCacheStore
    activity: ActivityLog
    library_sync: LibrarySync
    dedup: DedupJob
    client: CatalogClient | None = None
    resolver: IdentityResolver | None = None
    aggregator: ListAggregator | None = None
    shelf: WantToReadShelf | None = None
    want_sync: WantSyncJob | None = None

    def close(self) -> None:
        if isinstance(self.client, HardcoverClient):
            self.client.close()


def build_services(settings: Settings, client: CatalogClient | None = None) -> Services:
    """Open the database and wire every collaborator.

    Catalog-backed pieces are only built when a client is supplied or an
    API key is configured.
    """
    db = open_database(settings.database_path)
    mirror = MirrorStore(db)
    identity_map = IdentityMapStore(db)
    list_cache = ListCacheStore(db)
    suggested = SuggestedStore(db)
    wanted = WantedStore(db)
    want_cache = WantCacheStore(db)
    activity = ActivityLog(db)

    if client is None and settings.hardcover_configured:
        client = HardcoverClient(
            endpoint=settings.hardcover_endpoint,
            api_key=settings.hardcover_api_key,
            timeout=settings.request_timeout,
        )

    resolver = aggregator = shelf = want_sync = None
    if client is not None:
        resolver = IdentityResolver(
            client,
            mirror,
            identity_map,
            list_id=settings.hardcover_list_id,
            request_delay=settings.request_delay_seconds,
            activity=activity,
        )
        aggregator = ListAggregator(client)
        shelf = WantToReadShelf(client)
        want_sync = WantSyncJob(shelf, want_cache, wanted, activity)
    else:
        logger.info("Hardcover API key not configured; catalog features disabled")

    library_sync = LibrarySync(
        CalibreSource(settings.calibre_db_path),
        CoverCache(settings.covers_dir),
        mirror,
        list_cache,
        suggested,
        wanted,
        want_cache,
        resolver=resolver,
        aggregator=aggregator,
        shelf=shelf,
        activity=activity,
        lists_per_book=settings.lists_per_book,
        items_per_list=settings.items_per_list,
        pending_batch_size=settings.pending_batch_size,
        min_rating=settings.min_rating,
        request_delay=settings.request_delay_seconds,
    )
    return Services(
        settings=settings,
        db=db,
        mirror=mirror,
        identity_map=identity_map,
        list_cache=list_cache,
        suggested=suggested,
        wanted=wanted,
        want_cache=want_cache,
        activity=activity,
        library_sync=library_sync,
        dedup=DedupJob(suggested, activity),
        client=client,
        resolver=resolver,
        aggregator=aggregator,
        shelf=shelf,
        want_sync=want_sync,
    )
