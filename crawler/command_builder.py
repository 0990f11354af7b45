"""
Command line construction for the Screaming Frog SEO Spider CLI.

Export selections arrive as {group: {filter: selected}} and are mapped
through the tables below to the values ``--export-tabs`` and
``--bulk-export`` accept. Unknown groups and filters are ignored.
"""

from pathlib import Path
from typing import Dict, List, Optional

import structlog

from crawler.models import ExportOptions
from utilities.config import CliOptions

logger = structlog.get_logger(__name__)


def _filters(group: str, **filters: str) -> Dict[str, str]:
    return {key: f"{group}:{value}" for key, value in filters.items()}


EXPORT_TABS: Dict[str, Dict[str, str]] = {
    "internal": _filters(
        "Internal", all="All", html="HTML", javascript="JavaScript", css="CSS", images="Images",
        pdf="PDF", flash="Flash", other="Other", unknown="Unknown"
    ),
    "external": _filters(
        "External", all="All", html="HTML", javascript="JavaScript", css="CSS", images="Images",
        pdf="PDF", flash="Flash", other="Other", unknown="Unknown"
    ),
    "response_codes": _filters(
        "Response Codes", all="All", blocked_robots="Blocked by Robots.txt",
        blocked_resource="Blocked Resource", no_response="No Response",
        success_2xx="Success (2XX)", redirection_3xx="Redirection (3XX)",
        redirection_js="Redirection (JavaScript)", redirection_meta="Redirection (Meta Refresh)",
        client_error_4xx="Client Error (4XX)", server_error_5xx="Server Error (5XX)"
    ),
    "url": _filters(
        "URL", all="All", non_ascii="Non ASCII Characters", underscores="Underscores",
        uppercase="Uppercase", multiple_slashes="Multiple Slashes", repetitive_path="Repetitive Path",
        contains_space="Contains A Space", internal_search="Internal Search", parameters="Parameters",
        broken_bookmark="Broken Bookmark", ga_params="GA Tracking Parameters",
        over_115="Over 115 Characters"
    ),
    "page_titles": _filters(
        "Page Titles", all="All", missing="Missing", duplicate="Duplicate",
        over_60="Over 60 Characters", below_30="Below 30 Characters", over_pixels="Over X Pixels",
        below_pixels="Below X Pixels", same_as_h1="Same as H1", multiple="Multiple",
        outside_head="Outside <head>"
    ),
    "meta_description": _filters(
        "Meta Description", all="All", missing="Missing", duplicate="Duplicate",
        over_155="Over 155 Characters", below_70="Below 70 Characters", over_pixels="Over X Pixels",
        below_pixels="Below X Pixels", multiple="Multiple", outside_head="Outside <head>"
    ),
    "meta_keywords": _filters(
        "Meta Keywords", all="All", missing="Missing", duplicate="Duplicate", multiple="Multiple"
    ),
    "h1": _filters(
        "H1", all="All", missing="Missing", duplicate="Duplicate", over_70="Over 70 Characters",
        multiple="Multiple", alt_in_h1="Alt Text In H1", non_sequential="Non-Sequential"
    ),
    "h2": _filters(
        "H2", all="All", missing="Missing", duplicate="Duplicate", over_70="Over 70 Characters",
        multiple="Multiple", non_sequential="Non-Sequential"
    ),
    "content": _filters(
        "Content", all="All", exact_duplicates="Exact Duplicates", near_duplicates="Near Duplicates",
        low_content="Low Content Pages", soft_404="Soft 404 Pages", spelling_errors="Spelling Errors",
        grammar_errors="Grammar Errors", readability_difficult="Readability Difficult",
        readability_very_difficult="Readability Very Difficult",
        lorem_ipsum="Lorem Ipsum Placeholder"
    ),
    "images": _filters(
        "Images", all="All", over_100kb="Over 100kb", missing_alt_text="Missing Alt Text",
        missing_alt_attr="Missing Alt Attribute", alt_over_100="Alt Text Over 100 Characters",
        background="Background Images", missing_size_attrs="Missing Size Attributes",
        incorrectly_sized="Incorrectly Sized Images"
    ),
    "canonicals": _filters(
        "Canonicals", all="All", contains="Contains Canonical", self_referencing="Self Referencing",
        canonicalised="Canonicalised", missing="Missing", multiple="Multiple",
        non_indexable="Non-Indexable Canonical"
    ),
    "directives": _filters(
        "Directives", all="All", index="Index", noindex="Noindex", follow="Follow",
        nofollow="Nofollow", no_archive="NoArchive", no_snippet="NoSnippet", no_odp="NoODP",
        no_image_index="NoImageIndex", no_translate="NoTranslate",
        unavailable_after="Unavailable After", refresh="Refresh"
    ),
    "hreflang": _filters(
        "Hreflang", all="All", contains="Contains Hreflang", non_200="Non-200 Hreflang URLs",
        missing_return_links="Missing Return Links", inconsistent_language="Inconsistent Language",
        missing_x_default="Missing X-Default", missing_self_reference="Missing Self Reference"
    ),
    "security": _filters(
        "Security", all="All", http_urls="HTTP URLs", https_urls="HTTPS URLs",
        mixed_content="Mixed Content", form_insecure="Form URL Insecure",
        form_on_http="Form on HTTP URL", unsafe_cross_origin="Unsafe Cross-Origin Links",
        protocol_relative="Protocol-Relative Resource Links", missing_hsts="Missing HSTS Header",
        missing_csp="Missing Content-Security-Policy Header",
        missing_x_content_type="Missing X-Content-Type-Options Header",
        missing_x_frame_options="Missing X-Frame-Options Header",
        bad_content_type="Bad Content Type"
    ),
    "structured_data": _filters(
        "Structured Data", all="All", contains="Contains Structured Data", missing="Missing",
        validation_errors="Validation Errors", validation_warnings="Validation Warnings",
        parse_errors="Parse Errors"
    ),
    "sitemaps": _filters(
        "Sitemaps", all="All", urls_in_sitemap="URLs In Sitemap",
        urls_not_in_sitemap="URLs Not In Sitemap", orphan_urls="Orphan URLs In Sitemap",
        non_indexable="Non-Indexable URLs In Sitemap"
    ),
    "page_speed": _filters(
        "PageSpeed", all="All", poor_performance="Poor Performance",
        needs_improvement="Needs Improvement", good_performance="Good Performance"
    ),
    "amp": _filters(
        "AMP", all="All", contains_amp="Contains AMP Link", missing_amp="Missing AMP Link",
        missing_canonical="Missing Non-AMP Canonical", validation_errors="AMP Validation Errors"
    ),
}

BULK_EXPORTS: Dict[str, Dict[str, str]] = {
    "links": _filters(
        "Links", all_inlinks="All Inlinks", all_outlinks="All Outlinks",
        all_anchor_text="All Anchor Text", external_links="External Links",
        internal_nofollow_outlinks="Internal Nofollow Outlinks",
        no_anchor_text="Internal Outlinks With No Anchor Text",
        non_descriptive_anchor="Non-Descriptive Anchor Text In Internal Outlinks",
        follow_nofollow_inlinks="Follow & Nofollow Internal Inlinks To Page",
        nofollow_inlinks_only="Internal Nofollow Inlinks Only"
    ),
    "response_codes": _filters(
        "Response Codes", redirect_chains="Redirect Chains", redirect_loops="Redirect Loops",
        client_error_4xx_inlinks="Client Error (4XX) Inlinks",
        server_error_5xx_inlinks="Server Error (5XX) Inlinks"
    ),
    "url_data": _filters("URL", all_urls="All URLs", urls_by_segment="URLs by Segment"),
    "images": _filters(
        "Images", image_details="All Image Details", missing_alt_inlinks="Missing Alt Text Inlinks",
        oversized_images="Oversized Images Details"
    ),
    "canonicals": _filters(
        "Canonicals", canonical_chains="Canonical Chains",
        non_indexable_canonical="Non-Indexable Canonical Details"
    ),
    "content": _filters(
        "Content", duplicate_details="Duplicate Details", near_duplicate_details="Near Duplicate Details",
        spelling_error_details="Spelling Error Details", grammar_error_details="Grammar Error Details"
    ),
    "web": _filters(
        "Web", all_page_source="All Page Source", screenshots="Screenshots",
        all_pdf_documents="All PDF Documents", all_pdf_content="All PDF Content",
        all_http_request_headers="All HTTP Request Headers",
        all_http_response_headers="All HTTP Response Headers", all_cookies="All Cookies"
    ),
    "structured_data": _filters(
        "Structured Data", all_structured_data="All Structured Data",
        validation_error_details="Validation Error Details",
        validation_warning_details="Validation Warning Details"
    ),
    "javascript": _filters(
        "JavaScript", rendering_issues="JavaScript Rendering Issues",
        rendered_vs_original="Rendered vs Original Content", console_errors="Console Errors"
    ),
    "hreflang": _filters(
        "Hreflang", all_hreflang="All Hreflang URLs", hreflang_clusters="Hreflang Clusters",
        missing_return_links="Missing Return Links Details"
    ),
    "sitemaps": _filters(
        "Sitemaps", sitemap_urls="All Sitemap URLs", sitemap_details="Sitemap Details"
    ),
    "analytics": _filters(
        "Analytics", ga_data="Google Analytics Data", gsc_data="Google Search Console Data"
    ),
}


def select_values(selections: Dict[str, Dict[str, bool]], table: Dict[str, Dict[str, str]]) -> List[str]:
    """Map selected {group: {filter: True}} entries to CLI values, in selection order."""
    values = []
    for group, filters in (selections or {}).items():
        known = table.get(group)
        if not known:
            continue
        for key, selected in filters.items():
            if selected and key in known:
                values.append(known[key])
    return values


class CommandBuilder:
    """Builds argv lists for the crawler executable."""

    def __init__(self, executable: str, cli: CliOptions):
        self.executable = str(executable)
        self.cli = cli
        self.logger = logger.bind(component="command_builder")

    def build_crawl_command(
        self,
        url: str,
        output_path: Path,
        base_name: str,
        export_options: Optional[ExportOptions] = None,
        config_file: Optional[str] = None
    ) -> List[str]:
        """Command for a new crawl of ``url``."""
        args = [self.executable, "--crawl", url, "--output-folder", str(output_path)]
        if config_file:
            args += ["--config", str(config_file)]

        args += self._export_args(export_options)

        if self.cli.headless:
            args.append("--headless")
        if self.cli.save_crawl:
            args += ["--save-crawl", "--project-name", base_name]
        args += ["--export-format", self.cli.export_format]

        self.logger.info("Built crawl command", command=" ".join(args))
        return args

    def build_process_command(
        self,
        file_path: str,
        output_path: Path,
        export_options: Optional[ExportOptions] = None
    ) -> List[str]:
        """Command re-exporting an existing .seospider file."""
        args = [self.executable, "--open-project", str(file_path), "--output-folder", str(output_path)]
        args += self._export_args(export_options)

        if self.cli.headless:
            args.append("--headless")
        args += ["--export-format", self.cli.export_format]

        self.logger.info("Built process command", command=" ".join(args))
        return args

    def _export_args(self, export_options: Optional[ExportOptions]) -> List[str]:
        if export_options is None:
            return []

        args = []
        tabs = select_values(export_options.export_tabs, EXPORT_TABS)
        if tabs:
            args += ["--export-tabs", ",".join(tabs)]

        bulks = select_values(export_options.bulk_exports, BULK_EXPORTS)
        if bulks:
            args += ["--bulk-export", ",".join(bulks)]
        return args
