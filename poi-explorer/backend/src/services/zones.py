"""Group nearby POIs into map zones.

Clustering follows the Supercluster scheme used by web map clients: points
are projected into Web-Mercator unit space and merged greedily level by level,
from the raw points at ``max_zoom + 1`` down to the requested zoom. At each
level a node absorbs every unvisited neighbour within
``radius_px / (extent * 2**zoom)``; the merged node sits at the point-count
weighted mean of its parts. Only nodes holding ``min_points`` or more POIs
become zones, and only those centred within ``max_latitude`` of the equator.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger
from sklearn.neighbors import NearestNeighbors

from models import POI, Coordinate, Zone
from utils import distance_meters


@dataclass(frozen=True)
class ZoneSettings:
    radius_px: float = 80.0
    extent: int = 512
    min_zoom: int = 0
    max_zoom: int = 17
    min_points: int = 2
    min_radius_m: float = 150.0
    max_latitude: float = 85.0


DEFAULT_ZONE_SETTINGS = ZoneSettings()


@dataclass
class _Node:
    x: float
    y: float
    num_points: int
    leaves: List[int] = field(default_factory=list)
    cluster_id: Optional[int] = None
    zoom: float = math.inf


def _lng_x(lng: float) -> float:
    return lng / 360.0 + 0.5


def _lat_y(lat: float) -> float:
    s = math.sin(math.radians(lat))
    if s >= 1.0:
        return 0.0
    if s <= -1.0:
        return 1.0
    y = 0.5 - 0.25 * math.log((1 + s) / (1 - s)) / math.pi
    return min(max(y, 0.0), 1.0)


def _x_lng(x: float) -> float:
    return (x - 0.5) * 360.0


def _y_lat(y: float) -> float:
    y2 = (180.0 - y * 360.0) * math.pi / 180.0
    return 360.0 * math.atan(math.exp(y2)) / math.pi - 90.0


def _cluster_level(nodes: List[_Node], zoom: int, settings: ZoneSettings, n_points: int) -> List[_Node]:
    r = settings.radius_px / (settings.extent * math.pow(2, zoom))
    coords = np.array([[node.x, node.y] for node in nodes], dtype=np.float64)
    index = NearestNeighbors(radius=r, algorithm="kd_tree").fit(coords)
    neighborhoods = index.radius_neighbors(coords, return_distance=False)

    out: List[_Node] = []
    for i, node in enumerate(nodes):
        if node.zoom <= zoom:
            continue
        node.zoom = zoom

        neighbor_ids = sorted(int(j) for j in neighborhoods[i] if int(j) != i)
        num_origin = node.num_points
        num = num_origin + sum(nodes[j].num_points for j in neighbor_ids if nodes[j].zoom > zoom)

        if num > num_origin and num >= settings.min_points:
            wx = node.x * num_origin
            wy = node.y * num_origin
            leaves = list(node.leaves)
            for j in neighbor_ids:
                other = nodes[j]
                if other.zoom <= zoom:
                    continue
                other.zoom = zoom
                wx += other.x * other.num_points
                wy += other.y * other.num_points
                leaves.extend(other.leaves)
            cluster_id = (i << 5) + (zoom + 1) + n_points
            out.append(_Node(x=wx / num, y=wy / num, num_points=num, leaves=leaves, cluster_id=cluster_id))
        else:
            out.append(replace(node, zoom=math.inf))
            if num > 1:
                for j in neighbor_ids:
                    other = nodes[j]
                    if other.zoom <= zoom:
                        continue
                    other.zoom = zoom
                    out.append(replace(other, zoom=math.inf))
    return out


def _to_zone(node: _Node, pois: Sequence[POI], settings: ZoneSettings) -> Zone:
    members = [pois[i] for i in node.leaves]
    centroid = Coordinate(lat=_y_lat(node.y), lng=_x_lng(node.x))

    top = members[0]
    radius_m = 0.0
    for poi in members:
        if poi.score > top.score:
            top = poi
        radius_m = max(radius_m, distance_meters(centroid, poi.location))

    return Zone(
        id=f"zone_{node.cluster_id}",
        name=top.name,
        centroid=centroid,
        radius_meters=max(radius_m, settings.min_radius_m),
        member_ids=tuple(poi.id for poi in members),
        score=statistics.fmean(poi.score for poi in members),
    )


def clamp_zoom(display_scale: float, settings: ZoneSettings = DEFAULT_ZONE_SETTINGS) -> int:
    return max(settings.min_zoom, min(int(math.floor(display_scale)), settings.max_zoom + 1))


def build_zones(
    pois: Sequence[POI],
    display_scale: int,
    settings: ZoneSettings = DEFAULT_ZONE_SETTINGS,
) -> List[Zone]:
    """Cluster ``pois`` at map zoom ``display_scale`` and summarise each cluster."""
    if not pois:
        return []
    for poi in pois:
        if not (math.isfinite(poi.location.lat) and math.isfinite(poi.location.lng)):
            raise ValueError(f"POI {poi.id} has non-finite coordinates")

    zoom = clamp_zoom(display_scale, settings)
    nodes = [
        _Node(x=_lng_x(poi.location.lng), y=_lat_y(poi.location.lat), num_points=1, leaves=[i])
        for i, poi in enumerate(pois)
    ]
    for z in range(settings.max_zoom, zoom - 1, -1):
        nodes = _cluster_level(nodes, z, settings, len(pois))

    zones = [
        _to_zone(node, pois, settings)
        for node in nodes
        if node.cluster_id is not None and abs(_y_lat(node.y)) <= settings.max_latitude
    ]
    logger.debug("built {} zones from {} pois at zoom {}", len(zones), len(pois), zoom)
    return zones
