"""
deferring/orm/persistence.py

Parent save routine - applies pending links/unlinks of deferred relations.

Only relations whose proxy was accessed and reports pending changes are
touched, so saving a parent with untouched relations issues no queries for
them. After a successful save every applied proxy is rebaselined from its
working set without a refetch.
"""
from typing import Any, List, Optional
import logging

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session, object_session

from deferring.errors import DetachedParentError
from deferring.orm.adapter import SqlAlchemyAdapter
from deferring.orm.descriptors import instantiated_proxies
from deferring.proxy import DeferredCollection

logger = logging.getLogger(__name__)


def pending_proxies(parent: Any) -> List[DeferredCollection]:
    """Accessed deferred relations of ``parent`` with something to save"""
    return [proxy for proxy in instantiated_proxies(parent) if proxy.has_pending_changes()]


def apply_pending_changes(proxy: DeferredCollection, session: Session) -> int:
    """
    Apply one proxy's change set to its underlying relationship collection

    Returns:
        Number of link, unlink and delete operations staged
    """
    adapter = proxy.adapter
    if not isinstance(adapter, SqlAlchemyAdapter):
        raise TypeError(f"Cannot save deferred relation backed by {adapter!r}")

    links = proxy.links()
    unlinks = proxy.unlinks()
    doomed = proxy.marked_for_destruction

    collection = adapter.collection
    for element in unlinks:
        if element in collection:
            collection.remove(element)
    for element in links:
        if element not in collection:
            collection.append(element)
    for element in doomed:
        if sa_inspect(element).persistent:
            session.delete(element)

    logger.debug(
        f"Staged {proxy.relation.name}: {len(links)} links, "
        f"{len(unlinks)} unlinks, {len(doomed)} deletes"
    )
    return len(links) + len(unlinks) + len(doomed)


def save(parent: Any, session: Optional[Session] = None, commit: bool = True) -> bool:
    """
    Save ``parent`` together with its deferred relation changes

    Args:
        parent: Mapped parent instance
        session: Session to use, defaults to the parent's session
        commit: Commit after flushing

    Returns:
        True if any deferred relation had pending changes

    Raises:
        DetachedParentError: no session given and the parent has none
    """
    session = session or object_session(parent)
    if session is None:
        raise DetachedParentError(parent, "save")

    session.add(parent)
    proxies = pending_proxies(parent)

    try:
        staged = sum(apply_pending_changes(proxy, session) for proxy in proxies)
        if commit:
            session.commit()
        else:
            session.flush()
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to save {parent!r}: {e}", exc_info=True)
        raise

    for proxy in proxies:
        proxy.commit_baseline()

    if proxies:
        logger.info(f"Saved {parent!r}: {staged} deferred operations on {len(proxies)} relations")
    return bool(proxies)


__all__ = ["pending_proxies", "apply_pending_changes", "save"]
