from __future__ import annotations

from typing import Any, Dict, List, Optional, TYPE_CHECKING

import folium
import gpxpy
import gpxpy.gpx
import polyline

from looprun.Coordinate import Coordinate, LatLon
from looprun.RouteCandidate import CandidateSet, RouteCandidate
from looprun.geo import m_to_miles

if TYPE_CHECKING:
    from looprun.TrackingSession import TrackingSession

SELECTED_STYLE = {"color": "#ff3b3b", "weight": 7, "opacity": 0.95}
OTHER_STYLE = {"color": "#888", "weight": 4, "opacity": 0.6}
LIVE_PATH_STYLE = {"color": "lime", "weight": 6}


def format_time(seconds: float) -> str:
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"


def format_pace(pace_min_per_mile: float) -> str:
    return f"{pace_min_per_mile:.2f}" if pace_min_per_mile > 0 else "–"


def session_snapshot(session: "TrackingSession") -> Dict[str, Any]:
    path = session.path
    return {
        "type": "session",
        "state": session.state.name,
        "distance_mi": session.cumulative_distance_miles,
        "elapsed_s": session.elapsed_seconds,
        "pace_min_per_mi": session.pace_min_per_mile if session.pace_defined else None,
        "next_milestone_mi": session.next_milestone_miles,
        "display": {
            "distance": f"{session.cumulative_distance_miles:.2f} mi",
            "time": format_time(session.elapsed_seconds),
            "pace": f"{format_pace(session.pace_min_per_mile)} min/mi",
        },
        "live_path": polyline.encode(path) if len(path) > 1 else None,
    }


def candidate_style(c: RouteCandidate) -> Dict[str, Any]:
    return dict(SELECTED_STYLE if c.is_selected else OTHER_STYLE)


def candidates_geojson(candidate_set: CandidateSet) -> Dict[str, Any]:
    features = []
    for c in candidate_set:
        features.append({
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                "coordinates": [[lon, lat] for lat, lon in c.geometry],
            },
            "properties": {
                "id": c.id,
                "label": f"Loop {c.id + 1}",
                "selected": c.is_selected,
                "distance_mi": round(m_to_miles(c.dist_m), 2),
                "style": candidate_style(c),
            },
        })
    return {"type": "FeatureCollection", "features": features}


def candidates_event(candidate_set: CandidateSet) -> Dict[str, Any]:
    return {
        "type": "routes",
        "generation": candidate_set.generation,
        "origin": {"lat": candidate_set.origin.lat, "lon": candidate_set.origin.lon},
        "selected": candidate_set.selected.id if candidate_set.selected else None,
        "routes": [
            {"id": c.id, "polyline": polyline.encode(c.geometry), "selected": c.is_selected}
            for c in candidate_set
        ],
    }


# -------------------------
# map / export
# -------------------------
def draw_map(origin: Coordinate,
             candidate_set: Optional[CandidateSet] = None,
             live_path: Optional[List[LatLon]] = None,
             filename: str = "map.html") -> folium.Map:
    m = folium.Map(location=origin.as_latlon(), zoom_start=15)
    folium.Marker(origin.as_latlon(), popup="Start / End", icon=folium.Icon(color="green")).add_to(m)

    if candidate_set is not None:
        fc = candidates_geojson(candidate_set)
        # selected loop last so it is drawn on top
        fc["features"].sort(key=lambda f: f["properties"]["selected"])
        folium.GeoJson(
            fc,
            name="Loops",
            style_function=lambda f: f["properties"]["style"],
            tooltip=folium.GeoJsonTooltip(fields=["label", "distance_mi"], aliases=["", "Distance (mi)"]),
        ).add_to(m)

    if live_path and len(live_path) > 1:
        folium.PolyLine(live_path, tooltip="Live", **LIVE_PATH_STYLE).add_to(m)

    m.save(filename)
    return m


def write_gpx(geometry: List[LatLon], filename: str, name: str = "Loop") -> str:
    gpx = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack(name=name)
    segment = gpxpy.gpx.GPXTrackSegment()
    segment.points.extend(gpxpy.gpx.GPXTrackPoint(lat, lon) for lat, lon in geometry)
    track.segments.append(segment)
    gpx.tracks.append(track)

    xml = gpx.to_xml()
    with open(filename, "w", encoding="utf-8") as f:
        f.write(xml)
    return filename
