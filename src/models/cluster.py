"""Data models for the keyword co-occurrence graph."""

from dataclasses import dataclass, field
from typing import Dict, List, Set


@dataclass
class KeywordStat:
    """Aggregate usage of one keyword across a corpus."""

    keyword: str
    count: int = 0
    video_ids: Set[str] = field(default_factory=set)
    niches: Dict[str, int] = field(default_factory=dict)

    @property
    def video_count(self) -> int:
        return len(self.video_ids)

    @property
    def top_niche(self) -> str:
        """Most frequent niche; ties resolve to the niche seen first."""
        if not self.niches:
            return "unknown"
        return max(self.niches.items(), key=lambda item: item[1])[0]


@dataclass
class ClusterNode:
    node_id: int
    label: str
    size: float
    color: str
    group: int
    niche: str
    count: int

    def to_dict(self) -> dict:
        return {
            "id": str(self.node_id),
            "label": self.label,
            "size": round(self.size, 2),
            "color": self.color,
            "group": self.group,
            "niche": self.niche,
            "count": self.count,
        }


@dataclass
class ClusterEdge:
    source: int
    target: int
    value: int
    width: int
    weight: int = 1  # videos in which the pair co-occurs

    @property
    def pair_id(self) -> str:
        low, high = sorted((self.source, self.target))
        return f"{low}-{high}"

    def to_dict(self) -> dict:
        return {
            "id": self.pair_id,
            "from": str(self.source),
            "to": str(self.target),
            "value": self.value,
            "width": self.width,
            "weight": self.weight,
        }


@dataclass
class TopicClusterResult:
    nodes: List[ClusterNode] = field(default_factory=list)
    edges: List[ClusterEdge] = field(default_factory=list)
    keywords: List[KeywordStat] = field(default_factory=list)
    videos_analyzed: int = 0

    def to_dict(self) -> dict:
        return {
            "videos_analyzed": self.videos_analyzed,
            "keywords": [
                {
                    "keyword": k.keyword,
                    "count": k.count,
                    "videos": k.video_count,
                    "niche": k.top_niche,
                }
                for k in self.keywords
            ],
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }
