"""Track and artist models.

Tracks are ephemeral: they are fetched from the music catalog for a single
request, scored, selected and handed back to the caller.  Persisting them
is the job of an external collaborator.

:class:`ScoredTrack` extends :class:`Track` with the ranker's output (final
score, component scores, human-readable reasons) and the selector's
diversity-adjusted ``final_score``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Artist(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str
    genres: list[str] = Field(default_factory=list)
    popularity: float | None = None
    uri: str | None = None


class Track(BaseModel):
    """A catalog track.

    ``popularity`` is nominally 0-100 but is not range-validated: scores
    computed from it are clamped instead, so out-of-range catalog data
    cannot break a request.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    artists: list[Artist] = Field(default_factory=list)
    album: str | None = None
    popularity: float | None = None
    duration_ms: int = 0
    explicit: bool = False
    preview_url: str | None = None
    external_url: str | None = None
    uri: str | None = None
    # Audio features, when the catalog supplied them.
    tempo: float | None = None
    valence: float | None = None
    energy: float | None = None

    @property
    def artist_names(self) -> list[str]:
        return [a.name for a in self.artists]

    @property
    def primary_artist(self) -> str | None:
        return self.artists[0].name if self.artists else None

    @property
    def genres(self) -> list[str]:
        """Genre tags of every credited artist, de-duplicated in order."""
        seen: dict[str, None] = {}
        for artist in self.artists:
            for genre in artist.genres:
                seen.setdefault(genre, None)
        return list(seen)


class ScoredTrack(Track):
    """A track annotated by the ranker (and later the selector)."""

    score: float = Field(default=0.0, ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)
    context_score: float = Field(default=0.0, ge=0.0, le=1.0)
    preference_score: float = Field(default=0.0, ge=0.0, le=1.0)
    popularity_score: float = Field(default=0.0, ge=0.0, le=1.0)
    novelty_score: float = Field(default=0.0, ge=0.0, le=1.0)
    # Diversity-adjusted score assigned by the selector; None until selected.
    final_score: float | None = None
    # "user_playlists" or "global_catalog" once assigned to a result section.
    source: str | None = None

    @classmethod
    def from_track(cls, track: Track, **scores: object) -> ScoredTrack:
        data = track.model_dump()
        data.update(scores)
        return cls.model_validate(data)
