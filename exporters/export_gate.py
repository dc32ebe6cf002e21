"""Admission rules deciding which visited resources are written to the export."""

import logging
import posixpath
import re
from typing import Iterable, List, Optional, Set
from urllib.parse import urlparse

from models import ContentType, SourceAttr, VisitedResource

logger = logging.getLogger('crawl_markdown_exporter.exporters.export_gate')

# Images referenced from CSS backgrounds or <picture> alternatives are not exported
IMAGE_SOURCE_ATTRS = {SourceAttr.IMG_SRC, SourceAttr.A_HREF}


class ExportGate:
    """
    Decides whether a visited resource is persisted.

    is_exportable_candidate() is the pre-filter (status, content type, image
    source); should_export() applies the store-only allow-list, the external
    domain policy and the robots.txt exclusion.
    """

    def __init__(
        self,
        policy,
        store_only_url_regexes: Optional[Iterable[re.Pattern]] = None,
        disable_images: bool = False,
        disable_files: bool = False
    ):
        self.policy = policy
        self.store_only_url_regexes: List[re.Pattern] = list(store_only_url_regexes or [])
        self.disable_images = disable_images
        self.disable_files = disable_files

    @property
    def valid_content_types(self) -> Set[ContentType]:
        content_types = {ContentType.HTML, ContentType.REDIRECT}
        if not self.disable_images:
            content_types.add(ContentType.IMAGE)
        if not self.disable_files:
            content_types.add(ContentType.DOCUMENT)
        return content_types

    def is_exportable_candidate(self, resource: VisitedResource) -> bool:
        """Pre-filter: status 200, active content type, and images only from <img src> or <a href>."""
        if resource.is_image() and resource.source_attr not in IMAGE_SOURCE_ATTRS:
            return False

        return resource.status_code == 200 and resource.content_type in self.valid_content_types

    def should_export(self, resource: VisitedResource) -> bool:
        """
        Apply the admission rules to a candidate resource.

        Args:
            resource: Visited resource that passed is_exportable_candidate()

        Returns:
            True if the resource should be written to the export
        """
        if self.store_only_url_regexes:
            result = any(regex.search(resource.url) for regex in self.store_only_url_regexes)
        else:
            result = True

        if result and resource.is_external:
            host = resource.host
            if self.policy.is_external_domain_allowed_for_crawling(host):
                result = True
            elif resource.is_static_file() and self.policy.is_domain_allowed_for_static_files(host):
                result = True
            else:
                result = False

        # robots.txt is never exported, whatever the other rules say
        if posixpath.basename(urlparse(resource.url).path) == 'robots.txt':
            result = False

        return result

    @staticmethod
    def is_valid_url(url: str) -> bool:
        """Check that the URL is absolute with a scheme and host."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return bool(parsed.scheme) and bool(parsed.netloc)

    def filter(self, resources: Iterable[VisitedResource]) -> List[VisitedResource]:
        """Resources that are valid, pass the pre-filter and are admitted by the gate."""
        accepted = []
        for resource in resources:
            if not self.is_exportable_candidate(resource):
                continue
            if self.is_valid_url(resource.url) and self.should_export(resource):
                accepted.append(resource)
            else:
                logger.debug(f"Skipping {resource.url}: rejected by export rules")
        return accepted


__all__ = ['ExportGate', 'IMAGE_SOURCE_ATTRS']
