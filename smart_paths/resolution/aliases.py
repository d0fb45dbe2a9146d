"""
Alias Mapping Table
===================

Static and dynamic alias -> path table, per platform and locale.

Every alias entry carries localized display names ("바탕화면", "desktop",
"デスクトップ", ...) that all map to the same ordered set of candidate paths.
The table is built once for a ``PlatformEnvironment`` and refreshed with
paths the detector verified on disk.
"""

import ntpath
import posixpath
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from smart_paths.config.environment import (
    DARWIN,
    LINUX,
    PLATFORMS,
    WINDOWS,
    WSL,
    PlatformEnvironment,
)
from smart_paths.utils.logging_config import get_logger
from smart_paths.utils.similarity import compact_text, normalize_text, similarity

logger = get_logger(__name__)

DEFAULT_LOCALE = "ko"

# Match kinds, strongest first
EXACT = "exact"
CASE_INSENSITIVE = "case_insensitive"
COMPACT = "compact"
NEAR = "near"

_KIND_SCORES = {
    EXACT: 1.0,
    CASE_INSENSITIVE: 0.97,
    COMPACT: 0.95,
}


@dataclass
class AliasEntry:
    """One filesystem-location category.

    Attributes:
        key: Stable identifier ("downloads", "kakaotalk", ...).
        localized_names: Display names per locale.
        target_paths: Candidate paths per platform, in preference order.
        locale_paths: Extra candidates for the table's platform, per locale
            (localized folder names, regional cloud-sync suffixes).
    """
    key: str
    localized_names: Dict[str, List[str]] = field(default_factory=dict)
    target_paths: Dict[str, List[str]] = field(default_factory=dict)
    locale_paths: Dict[str, List[str]] = field(default_factory=dict)

    def names(self, locale: Optional[str] = None) -> List[str]:
        """Names for one locale, or all names when locale is None."""
        if locale is not None:
            return list(self.localized_names.get(locale, []))
        result = []
        for names in self.localized_names.values():
            result.extend(names)
        return result


@dataclass
class AliasMatch:
    """A lookup hit: which entry matched, through which name, how well."""
    key: str
    name: str
    locale: str
    kind: str
    score: float
    order: int


@dataclass
class _AliasTemplate:
    key: str
    names: Dict[str, List[str]]
    windows: List[str] = field(default_factory=list)
    posix: List[str] = field(default_factory=list)
    darwin: List[str] = field(default_factory=list)
    # locale -> {"windows"|"posix": templates}
    locale_extras: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)


# Templates use "/" as separator. The first segment may be "~" (home),
# "$TEMP" or a drive ("C:").
_TEMPLATES: List[_AliasTemplate] = [
    _AliasTemplate(
        key="home",
        names={
            "ko": ["홈", "홈 폴더", "사용자 폴더", "내 폴더"],
            "en": ["home", "home folder", "user folder"],
            "ja": ["ホーム"],
            "zh": ["主目录"],
        },
        windows=["~"],
        posix=["~"],
    ),
    _AliasTemplate(
        key="desktop",
        names={
            "ko": ["바탕화면", "바탕 화면", "데스크탑", "데스크톱"],
            "en": ["desktop"],
            "ja": ["デスクトップ"],
            "zh": ["桌面"],
        },
        windows=["~/Desktop"],
        posix=["~/Desktop"],
        locale_extras={
            "ko": {"windows": ["~/OneDrive/바탕 화면"], "posix": ["~/바탕화면"]},
            "en": {"windows": ["~/OneDrive/Desktop"]},
            "ja": {"windows": ["~/OneDrive/デスクトップ"], "posix": ["~/デスクトップ"]},
            "zh": {"windows": ["~/OneDrive/桌面"], "posix": ["~/桌面"]},
        },
    ),
    _AliasTemplate(
        key="documents",
        names={
            "ko": ["문서", "내 문서", "내문서", "도큐먼트"],
            "en": ["documents", "my documents", "docs"],
            "ja": ["ドキュメント", "資料"],
            "zh": ["文档"],
        },
        windows=["~/Documents"],
        posix=["~/Documents"],
        locale_extras={
            "ko": {"windows": ["~/OneDrive/문서"], "posix": ["~/문서"]},
            "en": {"windows": ["~/OneDrive/Documents"]},
            "ja": {"windows": ["~/OneDrive/ドキュメント"], "posix": ["~/ドキュメント"]},
            "zh": {"windows": ["~/OneDrive/文档"], "posix": ["~/文档"]},
        },
    ),
    _AliasTemplate(
        key="downloads",
        names={
            "ko": ["다운로드", "다운로드 폴더", "다운"],
            "en": ["downloads", "download", "download folder"],
            "ja": ["ダウンロード"],
            "zh": ["下载"],
        },
        windows=["~/Downloads"],
        posix=["~/Downloads"],
        locale_extras={
            "ko": {"posix": ["~/다운로드"]},
            "ja": {"posix": ["~/ダウンロード"]},
            "zh": {"posix": ["~/下载"]},
        },
    ),
    _AliasTemplate(
        key="pictures",
        names={
            "ko": ["사진", "그림", "이미지", "사진 폴더"],
            "en": ["pictures", "photos", "images"],
            "ja": ["ピクチャ", "写真"],
            "zh": ["图片"],
        },
        windows=["~/Pictures"],
        posix=["~/Pictures"],
        locale_extras={
            "ko": {"windows": ["~/OneDrive/사진"], "posix": ["~/사진"]},
            "en": {"windows": ["~/OneDrive/Pictures"]},
            "ja": {"posix": ["~/ピクチャ"]},
            "zh": {"posix": ["~/图片"]},
        },
    ),
    _AliasTemplate(
        key="music",
        names={
            "ko": ["음악", "음악 폴더", "노래"],
            "en": ["music", "songs"],
            "ja": ["ミュージック", "音楽"],
            "zh": ["音乐"],
        },
        windows=["~/Music"],
        posix=["~/Music"],
        locale_extras={
            "ko": {"posix": ["~/음악"]},
            "ja": {"posix": ["~/ミュージック"]},
            "zh": {"posix": ["~/音乐"]},
        },
    ),
    _AliasTemplate(
        key="videos",
        names={
            "ko": ["비디오", "동영상", "영상"],
            "en": ["videos", "video", "movies"],
            "ja": ["ビデオ", "動画"],
            "zh": ["视频"],
        },
        windows=["~/Videos"],
        posix=["~/Videos"],
        darwin=["~/Movies"],
        locale_extras={
            "ko": {"posix": ["~/비디오"]},
            "ja": {"posix": ["~/ビデオ"]},
            "zh": {"posix": ["~/视频"]},
        },
    ),
    _AliasTemplate(
        key="onedrive",
        names={
            "ko": ["원드라이브"],
            "en": ["onedrive", "one drive"],
        },
        windows=["~/OneDrive"],
        posix=["~/OneDrive"],
        darwin=["~/Library/CloudStorage/OneDrive-Personal"],
        locale_extras={
            "ko": {"windows": ["~/OneDrive - 개인용"], "posix": ["~/OneDrive - 개인용"]},
            "en": {"windows": ["~/OneDrive - Personal"], "posix": ["~/OneDrive - Personal"]},
            "ja": {"windows": ["~/OneDrive - 個人用"], "posix": ["~/OneDrive - 個人用"]},
            "zh": {"windows": ["~/OneDrive - 个人"], "posix": ["~/OneDrive - 个人"]},
        },
    ),
    _AliasTemplate(
        key="dropbox",
        names={"ko": ["드롭박스"], "en": ["dropbox"]},
        windows=["~/Dropbox"],
        posix=["~/Dropbox"],
    ),
    _AliasTemplate(
        key="google_drive",
        names={"ko": ["구글드라이브", "구글 드라이브"], "en": ["google drive", "gdrive"]},
        windows=["~/Google Drive", "G:/My Drive"],
        posix=["~/Google Drive"],
        darwin=["~/Library/CloudStorage/GoogleDrive"],
    ),
    _AliasTemplate(
        key="icloud",
        names={"ko": ["아이클라우드", "아이클라우드 드라이브"], "en": ["icloud", "icloud drive"]},
        windows=["~/iCloudDrive"],
        darwin=["~/Library/Mobile Documents/com~apple~CloudDocs"],
    ),
    _AliasTemplate(
        key="kakaotalk",
        names={
            "ko": [
                "카카오톡 받은 파일", "카톡 받은 파일", "카카오톡 파일", "카톡 파일",
                "카카오톡 다운로드", "카톡 다운로드", "카카오톡 폴더", "카톡 폴더",
                "카카오톡",
            ],
            "en": ["kakaotalk received files", "kakaotalk", "kakao"],
        },
        windows=["~/Documents/카카오톡 받은 파일", "~/Documents/KakaoTalk Received Files"],
        posix=["~/Documents/카카오톡 받은 파일", "~/Documents/KakaoTalk Received Files"],
    ),
    _AliasTemplate(
        key="line",
        names={"ko": ["라인 받은 파일", "라인"], "en": ["line received files", "line"]},
        windows=["~/Documents/LINE Received Files"],
        posix=["~/Documents/LINE Received Files"],
    ),
    _AliasTemplate(
        key="telegram",
        names={"ko": ["텔레그램 받은 파일", "텔레그램"], "en": ["telegram received files", "telegram"]},
        windows=["~/Downloads/Telegram Desktop", "~/Documents/Telegram Desktop"],
        posix=["~/Downloads/Telegram Desktop"],
    ),
    _AliasTemplate(
        key="recycle_bin",
        names={"ko": ["휴지통"], "en": ["recycle bin", "trash"], "ja": ["ごみ箱"], "zh": ["回收站"]},
        windows=["C:/$Recycle.Bin"],
        posix=["~/.local/share/Trash"],
        darwin=["~/.Trash"],
    ),
    _AliasTemplate(
        key="recent",
        names={"ko": ["최근 항목", "최근 파일", "최근"], "en": ["recent", "recent files"]},
        windows=["~/AppData/Roaming/Microsoft/Windows/Recent"],
    ),
    _AliasTemplate(
        key="favorites",
        names={"ko": ["즐겨찾기"], "en": ["favorites", "favourites"]},
        windows=["~/Favorites", "~/Links"],
    ),
    _AliasTemplate(
        key="temp",
        names={"ko": ["임시", "임시 폴더"], "en": ["temp", "tmp", "temporary"]},
        windows=["$TEMP"],
        posix=["$TEMP"],
    ),
    _AliasTemplate(
        key="drive_c",
        names={"ko": ["c드라이브", "c 드라이브"], "en": ["c:", "c drive"]},
        windows=["C:/"],
    ),
    _AliasTemplate(
        key="drive_d",
        names={"ko": ["d드라이브", "d 드라이브"], "en": ["d:", "d drive"]},
        windows=["D:/"],
    ),
    _AliasTemplate(
        key="drive_e",
        names={"ko": ["e드라이브", "e 드라이브"], "en": ["e:", "e drive"]},
        windows=["E:/"],
    ),
    _AliasTemplate(
        key="projects",
        names={"ko": ["프로젝트", "프로젝트 폴더"], "en": ["projects", "project"]},
        windows=["~/Documents/Projects"],
        posix=["~/projects", "~/Documents/Projects"],
    ),
    _AliasTemplate(
        key="work",
        names={"ko": ["작업", "업무", "회사"], "en": ["work", "company"]},
        windows=["~/Documents/Work"],
        posix=["~/Documents/Work"],
    ),
]


class _Renderer:
    """Expands templates into concrete paths for one target platform."""

    def __init__(self, env: PlatformEnvironment):
        self.env = env
        self.windows_home = (
            env.home if env.is_windows else f"C:\\Users\\{env.username}"
        )
        self.posix_home = env.home if not env.is_windows else f"/home/{env.username}"
        self.darwin_home = env.home if env.platform == DARWIN else f"/Users/{env.username}"

    def _render(self, template: str, pathmod, home: str, temp: str) -> str:
        head, _, rest = template.partition("/")
        if head == "~":
            root = home
        elif head == "$TEMP":
            root = temp
        elif len(head) == 2 and head[1] == ":":
            root = head + pathmod.sep
        else:
            return pathmod.normpath(template)
        if not rest:
            return root
        return pathmod.join(root, *rest.split("/"))

    def windows(self, template: str) -> str:
        temp = (
            self.env.temp_dir if self.env.is_windows
            else ntpath.join(self.windows_home, "AppData", "Local", "Temp")
        )
        return self._render(template, ntpath, self.windows_home, temp)

    def posix(self, template: str, home: Optional[str] = None) -> str:
        temp = self.env.temp_dir if not self.env.is_windows else "/tmp"
        return self._render(template, posixpath, home or self.posix_home, temp)

    def wsl_translation(self, template: str) -> Optional[str]:
        """``/mnt/c/...`` form of a Windows template, None for non-drive roots."""
        if template == "$TEMP" or template.startswith("$TEMP/"):
            return None
        return self.env.to_wsl_path(self.windows(template))

    def platform_targets(self, tpl: _AliasTemplate) -> Dict[str, List[str]]:
        targets: Dict[str, List[str]] = {}
        targets[WINDOWS] = [self.windows(t) for t in tpl.windows]
        targets[LINUX] = [self.posix(t) for t in tpl.posix]
        targets[DARWIN] = [self.posix(t, self.darwin_home) for t in tpl.posix + tpl.darwin]

        wsl = [self.posix(t) for t in tpl.posix]
        for t in tpl.windows:
            translated = self.wsl_translation(t)
            if translated:
                wsl.append(translated)
        targets[WSL] = wsl
        return {platform: _dedupe(paths) for platform, paths in targets.items()}

    def locale_targets(self, tpl: _AliasTemplate) -> Dict[str, List[str]]:
        result: Dict[str, List[str]] = {}
        for locale, extras in tpl.locale_extras.items():
            if self.env.is_windows:
                paths = [self.windows(t) for t in extras.get("windows", [])]
            elif self.env.is_wsl:
                paths = [self.posix(t) for t in extras.get("posix", [])]
                paths += [p for p in map(self.wsl_translation, extras.get("windows", [])) if p]
            elif self.env.platform == DARWIN:
                paths = [self.posix(t, self.darwin_home) for t in extras.get("posix", [])]
            else:
                paths = [self.posix(t) for t in extras.get("posix", [])]
            if paths:
                result[locale] = _dedupe(paths)
        return result


def _dedupe(paths: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            result.append(path)
    return result


def build_default_aliases(env: PlatformEnvironment) -> List[AliasEntry]:
    """Render the built-in alias table for an environment."""
    renderer = _Renderer(env)
    entries = []
    for tpl in _TEMPLATES:
        entries.append(AliasEntry(
            key=tpl.key,
            localized_names={loc: list(names) for loc, names in tpl.names.items()},
            target_paths=renderer.platform_targets(tpl),
            locale_paths=renderer.locale_targets(tpl),
        ))
    return entries


class MappingTable:
    """Alias table for one platform environment.

    Lookups are read-mostly; mutation (``add_alias``, ``apply_detection``)
    happens under a lock so a periodic detector can refresh the table while
    resolutions run.
    """

    def __init__(
        self,
        env: PlatformEnvironment,
        entries: Optional[List[AliasEntry]] = None,
        default_locale: str = DEFAULT_LOCALE,
        near_match_threshold: float = 0.8,
    ):
        self.env = env
        self.default_locale = default_locale
        self.near_match_threshold = near_match_threshold
        self._entries: Dict[str, AliasEntry] = {}
        self._lock = threading.RLock()

        for entry in (entries if entries is not None else build_default_aliases(env)):
            self._entries[entry.key] = entry

        logger.debug(
            f"Mapping table built for {env.platform}: {len(self._entries)} aliases"
        )

    @property
    def platform(self) -> str:
        return self.env.platform

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def get_entry(self, key: str) -> Optional[AliasEntry]:
        with self._lock:
            return self._entries.get(key)

    def get_base_paths(self, key: str, locale: Optional[str] = None) -> List[str]:
        """Ordered candidate paths for an alias key.

        Platform targets come first, then the locale's extra candidates. An
        unknown locale falls back to the default locale.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return []
            locale = locale or self.default_locale
            paths = list(entry.target_paths.get(self.platform, []))
            extras = entry.locale_paths.get(locale)
            if extras is None:
                extras = entry.locale_paths.get(self.default_locale, [])
            return _dedupe(paths + list(extras))

    def get_all_aliases(self) -> Dict[str, str]:
        """Flattened display name -> first candidate path."""
        aliases: Dict[str, str] = {}
        with self._lock:
            for entry in self._entries.values():
                for locale, names in entry.localized_names.items():
                    paths = self.get_base_paths(entry.key, locale)
                    if not paths:
                        continue
                    for name in names:
                        aliases.setdefault(name, paths[0])
        return aliases

    def _name_index(self, locale: str) -> List[Tuple[str, str, str]]:
        """(name, key, locale) in lookup order: requested locale first."""
        locale_order = [locale]
        if self.default_locale != locale:
            locale_order.append(self.default_locale)

        index = []
        for loc in locale_order:
            for entry in self._entries.values():
                for name in entry.localized_names.get(loc, []):
                    index.append((name, entry.key, loc))
        for entry in self._entries.values():
            for loc, names in entry.localized_names.items():
                if loc in locale_order:
                    continue
                for name in names:
                    index.append((name, entry.key, loc))
        return index

    def lookup(self, text: str, locale: Optional[str] = None) -> List[AliasMatch]:
        """Find alias entries for a piece of text.

        Tries exact, case-insensitive, then whitespace/punctuation-compacted
        equality; if none hit, near-exact matches with similarity at or above
        the threshold. Results are best-first, one per key, ties broken by
        score then index order.
        """
        if not text or not text.strip():
            return []
        locale = locale or self.default_locale
        raw = text.strip()
        normalized = normalize_text(raw)
        compact = compact_text(raw)

        with self._lock:
            index = self._name_index(locale)

        checks = (
            (EXACT, lambda name: name == raw),
            (CASE_INSENSITIVE, lambda name: normalize_text(name) == normalized),
            (COMPACT, lambda name: bool(compact) and compact_text(name) == compact),
        )
        for kind, predicate in checks:
            matches = [
                AliasMatch(key, name, loc, kind, _KIND_SCORES[kind], order)
                for order, (name, key, loc) in enumerate(index)
                if predicate(name)
            ]
            if matches:
                return _best_per_key(matches)

        if not compact:
            return []
        near = []
        for order, (name, key, loc) in enumerate(index):
            score = similarity(compact_text(name), compact)
            if score >= self.near_match_threshold:
                near.append(AliasMatch(key, name, loc, NEAR, round(score, 4), order))
        return _best_per_key(near)

    def resolve_key(self, text: str, locale: Optional[str] = None) -> Optional[str]:
        """Best alias key for the text, or None."""
        matches = self.lookup(text, locale)
        return matches[0].key if matches else None

    def add_alias(
        self,
        key: str,
        names: Dict[str, List[str]],
        paths: List[str],
        platform: Optional[str] = None,
    ) -> AliasEntry:
        """Create an alias or extend an existing one.

        New paths are appended after the existing candidates of ``platform``
        (default: the table's platform).
        """
        platform = platform or self.platform
        if platform not in PLATFORMS:
            raise ValueError(f"Unknown platform: {platform}")

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = AliasEntry(key=key)
                self._entries[key] = entry
            for locale, locale_names in names.items():
                existing = entry.localized_names.setdefault(locale, [])
                for name in locale_names:
                    if name not in existing:
                        existing.append(name)
            current = entry.target_paths.get(platform, [])
            entry.target_paths[platform] = _dedupe(current + list(paths))

        logger.info(f"Alias added: {key} -> {paths}")
        return entry

    def apply_detection(self, detected: Dict[str, List[str]]) -> int:
        """Promote verified paths to the front of their entry's candidates.

        Args:
            detected: category (alias key) -> verified paths.

        Returns:
            Number of entries that changed.
        """
        changed = 0
        with self._lock:
            for category, paths in detected.items():
                entry = self._entries.get(category)
                if entry is None or not paths:
                    continue
                current = entry.target_paths.get(self.platform, [])
                promoted = _dedupe(list(paths) + current)
                if promoted != current:
                    entry.target_paths[self.platform] = promoted
                    changed += 1
        if changed:
            logger.info(f"Mapping table refreshed from detection: {changed} aliases updated")
        return changed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


def _best_per_key(matches: List[AliasMatch]) -> List[AliasMatch]:
    matches.sort(key=lambda m: (-m.score, m.order))
    seen = set()
    result = []
    for match in matches:
        if match.key in seen:
            continue
        seen.add(match.key)
        result.append(match)
    return result
