"""
ID translation between TMDB, AniList and MyAnimeList.

Every lookup is best effort: upstream failures degrade to None (or a
non-anime classification) and are never cached, so the next request
retries. Successful results are cached for 24 hours.

    TMDB details --(title search + scoring)--> AniList id
    AniList id --(idMal)--> MAL id --(TMDB /find)--> TMDB id + media type
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from anilist_client import AnilistClient
from cache import TTLCache, create
from tmdb_client import TmdbClient

NOT_YET_AIRED = "not yet aired"
YEAR_BONUS = 5

_WORD_SPLIT = re.compile(r"[\s:-]+")
_MISSING = object()


@dataclass(frozen=True)
class TmdbMatch:
    tmdb_id: str
    media_type: str  # "tv" | "movie"


@dataclass
class AnimeClassification:
    is_anime: bool
    details: Optional[dict]


def _title_words(title: str) -> set[str]:
    return {w for w in _WORD_SPLIT.split(title.lower()) if w}


def _release_year(details: dict) -> Optional[int]:
    date = details.get("release_date") or details.get("first_air_date") or ""
    return int(date[:4]) if len(date) >= 4 and date[:4].isdigit() else None


def best_match(title: str, year: Optional[int], candidates: list[dict]) -> Optional[dict]:
    """
    Pick the AniList candidate that best matches a TMDB title.

    An exact case-insensitive match on the English or Romaji title wins
    outright. Otherwise aired candidates are scored by shared title words,
    plus YEAR_BONUS when the release year matches; the first candidate
    with the highest score wins.
    """
    wanted = title.lower()
    for c in candidates:
        titles = c.get("title") or {}
        english, romaji = titles.get("english"), titles.get("romaji")
        if (english and english.lower() == wanted) or (romaji and romaji.lower() == wanted):
            return c

    title_words = _title_words(title)
    best, best_score = None, -1
    for c in candidates:
        status = c.get("status")
        if not status or status.lower() == NOT_YET_AIRED:
            continue
        titles = c.get("title") or {}
        candidate_title = titles.get("english") or titles.get("romaji") or ""
        if not candidate_title:
            continue

        score = len(title_words & _title_words(candidate_title))
        if year and c.get("releaseDate") and year == c["releaseDate"]:
            score += YEAR_BONUS

        if score > best_score:
            best, best_score = c, score
    return best


class IdResolver:
    def __init__(
        self,
        tmdb: TmdbClient,
        anilist: AnilistClient,
        anilist_id_cache: Optional[TTLCache] = None,
        anilist_tmdb_cache: Optional[TTLCache] = None,
        anime_info_cache: Optional[TTLCache] = None,
    ):
        self.tmdb = tmdb
        self.anilist = anilist
        self.anilist_id_cache = anilist_id_cache or create("anilist_id")
        self.anilist_tmdb_cache = anilist_tmdb_cache or create("anilist_tmdb")
        self.anime_info_cache = anime_info_cache or create("anime_info")

    def caches(self) -> list[TTLCache]:
        return [self.anilist_id_cache, self.anilist_tmdb_cache, self.anime_info_cache]

    async def resolve_anilist_from_tmdb(self, tmdb_details: dict) -> Optional[int]:
        tmdb_id = tmdb_details.get("id")
        key = f"anilist-id-{tmdb_id}"
        cached = self.anilist_id_cache.get(key)
        if cached is not None:
            print(f"[id_resolver] cache hit TMDB {tmdb_id} -> AniList {cached}")
            return cached

        original_title = tmdb_details.get("name") or tmdb_details.get("title") or ""
        if not original_title:
            return None
        search_title = original_title.split(":")[0].strip() or original_title

        try:
            candidates = await self.anilist.search_anime(search_title)
        except Exception as e:
            print(f"[id_resolver] AniList search failed for '{search_title}': {e}")
            return None

        if not candidates:
            print(f"[id_resolver] No AniList results for '{search_title}'")
            return None

        match = best_match(original_title, _release_year(tmdb_details), candidates)
        if not match or not match.get("id"):
            print(f"[id_resolver] No good AniList match for '{original_title}'")
            return None

        anilist_id = match["id"]
        print(f"[id_resolver] TMDB {tmdb_id} -> AniList {anilist_id}")
        self.anilist_id_cache.set(key, anilist_id)
        return anilist_id

    async def resolve_tmdb_from_anilist(self, anilist_id) -> Optional[TmdbMatch]:
        key = f"anilist-tmdb-{anilist_id}"
        cached = self.anilist_tmdb_cache.get(key)
        if cached is not None:
            return cached

        try:
            mal_id = await self.anilist.mal_id(anilist_id)
            if not mal_id:
                print(f"[id_resolver] AniList {anilist_id} has no MAL id")
                return None
            found = await self.tmdb.find_by_external_id(str(mal_id), "myanimelist_id")
        except Exception as e:
            print(f"[id_resolver] AniList {anilist_id} -> TMDB failed: {e}")
            return None

        if not found:
            return None
        if found.get("tv_results"):
            match = TmdbMatch(str(found["tv_results"][0]["id"]), "tv")
        elif found.get("movie_results"):
            match = TmdbMatch(str(found["movie_results"][0]["id"]), "movie")
        else:
            print(f"[id_resolver] MAL {mal_id} has no TMDB entry")
            return None

        print(f"[id_resolver] AniList {anilist_id} -> TMDB {match.media_type}/{match.tmdb_id}")
        self.anilist_tmdb_cache.set(key, match)
        return match

    async def classify_anime(self, tmdb_id: str, media_type: str) -> AnimeClassification:
        """Animation genre + Japanese original language counts as anime."""
        if media_type not in ("tv", "movie"):
            return AnimeClassification(False, None)

        key = f"{media_type}-{tmdb_id}"
        try:
            cached = self.anime_info_cache.get(key, _MISSING)
            # the flag and the details live in separate caches; always refetch details
            details = await self.tmdb.details(media_type, tmdb_id)
        except Exception as e:
            print(f"[id_resolver] classify {key} failed: {e}")
            return AnimeClassification(False, None)

        if cached is not _MISSING:
            return AnimeClassification(cached, details)
        if details is None:
            return AnimeClassification(False, None)

        genres = details.get("genres") or []
        is_animation = any(g.get("name") == "Animation" for g in genres)
        is_anime = is_animation and details.get("original_language") == "ja"
        self.anime_info_cache.set(key, is_anime)
        return AnimeClassification(is_anime, details)

    async def fetch_external_ids(self, tmdb_id: str, media_type: str) -> Optional[str]:
        """IMDb id for a TMDB movie/show, or None."""
        try:
            ids = await self.tmdb.external_ids(media_type, tmdb_id)
        except Exception as e:
            print(f"[id_resolver] external ids for {media_type}/{tmdb_id} failed: {e}")
            return None
        return (ids or {}).get("imdb_id") or None


@dataclass
class ResolutionContext:
    """
    Per-request memo so walking the fallback list never repeats a lookup,
    including failed ones.
    """
    resolver: IdResolver
    _memo: dict = field(default_factory=dict)

    async def _once(self, key, factory):
        if key not in self._memo:
            self._memo[key] = await factory()
        return self._memo[key]

    async def tmdb_from_anilist(self, anilist_id) -> Optional[TmdbMatch]:
        return await self._once(
            ("tmdb", anilist_id),
            lambda: self.resolver.resolve_tmdb_from_anilist(anilist_id),
        )

    async def anilist_from_tmdb(self, details: dict) -> Optional[int]:
        return await self._once(
            ("anilist", details.get("id")),
            lambda: self.resolver.resolve_anilist_from_tmdb(details),
        )

    async def classify(self, tmdb_id: str, media_type: str) -> AnimeClassification:
        return await self._once(
            ("classify", media_type, tmdb_id),
            lambda: self.resolver.classify_anime(tmdb_id, media_type),
        )

    async def imdb_id(self, tmdb_id: str, media_type: str) -> Optional[str]:
        return await self._once(
            ("imdb", media_type, tmdb_id),
            lambda: self.resolver.fetch_external_ids(tmdb_id, media_type),
        )
