"""
Best-effort classification of reference screenshots.

Image files in a subject directory are bucketed by filename into search, detail,
one bucket per tab named in tabs.json, or general. Matching is by substring in
either direction, and the first tab in tabs.json order wins when several match.
"""
import os
import re
from typing import Dict, Iterable, List, Optional

from forge.pipeline.artifacts import ArtifactStore
from schemas import Tabs

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp"}

SEARCH_TOKENS = ("search", "list", "index")
DETAIL_TOKENS = ("detail", "edit", "view")

SEARCH = "search"
DETAIL = "detail"
GENERAL = "general"
TAB_PREFIX = "tab:"

TABS_ARTIFACT = "tabs.json"

_LEADING_TAB = re.compile(r"^tab", re.IGNORECASE)
_TRAILING_TAB = re.compile(r"tab$", re.IGNORECASE)


def is_image(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in IMAGE_EXTENSIONS


def normalize_stem(path: str) -> str:
    stem = os.path.splitext(os.path.basename(path))[0].casefold()
    if stem.startswith("frm"):
        stem = stem[3:]
    stem = _LEADING_TAB.sub("", stem)
    return _TRAILING_TAB.sub("", stem)


def clean_tab_name(name: str) -> str:
    """Drop a tab prefix/suffix but keep the display casing (tabBilling -> Billing)."""
    name = _LEADING_TAB.sub("", name.strip())
    return _TRAILING_TAB.sub("", name)


def tab_names_from(tabs: Tabs) -> List[str]:
    names = []
    for entry in tabs.tabs:
        cleaned = clean_tab_name(entry.display_name)
        if cleaned:
            names.append(cleaned)
    return names


def load_tab_names(store: ArtifactStore) -> List[str]:
    if not store.exists(TABS_ARTIFACT):
        return []
    return tab_names_from(store.load(TABS_ARTIFACT, Tabs))


def categorize(path: str, tab_names: Iterable[str]) -> str:
    base = os.path.splitext(os.path.basename(path))[0].casefold()
    if any(token in base for token in SEARCH_TOKENS):
        return SEARCH
    if any(token in base for token in DETAIL_TOKENS):
        return DETAIL
    stem = normalize_stem(path)
    # An empty stem is a substring of every tab name; never let it match.
    if stem:
        for name in tab_names:
            folded = name.casefold()
            if stem in folded or folded in stem:
                return TAB_PREFIX + name
    return GENERAL


def classify_assets(files: Iterable[str], tab_names: Iterable[str]) -> Dict[str, List[str]]:
    """
    Map each image in `files` to exactly one category. Keys appear in order of
    first discovery and each bucket keeps the order its files were seen in.
    Non-image paths are ignored.
    """
    tab_names = list(tab_names)
    buckets: Dict[str, List[str]] = {}
    for path in files:
        if not is_image(path):
            continue
        buckets.setdefault(categorize(path, tab_names), []).append(path)
    return buckets


def find_asset_files(subject_dir: str) -> List[str]:
    if not os.path.isdir(subject_dir):
        return []
    return [
        os.path.join(subject_dir, name) for name in sorted(os.listdir(subject_dir))
        if is_image(name) and os.path.isfile(os.path.join(subject_dir, name))
    ]


def render_asset_context(buckets: Dict[str, List[str]]) -> str:
    """Plain-text listing of the classified screenshots for the generation stage."""
    if not any(buckets.values()):
        return ""
    lines: List[str] = ["REFERENCE SCREEN IMAGES", ""]

    def section(title: str, paths: Optional[List[str]], indent: str = ""):
        if not paths:
            return
        lines.append(f"{indent}{title}:")
        lines.extend(f"{indent}- {p}" for p in paths)
        lines.append("")

    section("SEARCH SCREEN IMAGES", buckets.get(SEARCH))
    section("DETAIL SCREEN IMAGES", buckets.get(DETAIL))
    tab_keys = [k for k in buckets if k.startswith(TAB_PREFIX)]
    if tab_keys:
        lines.append("TAB-SPECIFIC IMAGES (matched to tab names):")
        for key in tab_keys:
            section(f"Tab: {key[len(TAB_PREFIX):]}", buckets[key], indent="  ")
    section("ADDITIONAL SCREEN IMAGES", buckets.get(GENERAL))
    return "\n".join(lines).rstrip() + "\n"
