"""
Visualization Module for the Terminal Crowd Simulation
Plotly snapshots and animations of agents, heatmap and the APM fleet
"""

import plotly.graph_objects as go
from plotly.subplots import make_subplots
from typing import List
import plotly.io as pio

from apm_trains import LOOP_LENGTH, STATIONS, Direction, Vehicle, load_band, load_percentage
from terminal_crowd import Agent, AgentStatus
from terminal_floorplan import Zone, ZoneType
from terminal_heatmap import HeatmapCell

pio.renderers.default = "browser"


STATUS_COLORS = {
    AgentStatus.BOARDING: '#fbbf24',  # amber
    AgentStatus.MOVING: '#3b82f6',  # blue
    AgentStatus.WAITING: '#10b981',  # green
}

ZONE_FILLS = {
    ZoneType.WAITING: 'rgba(229, 231, 235, 0.5)',
    ZoneType.CORRIDOR: 'rgba(209, 213, 219, 0.6)',
    ZoneType.GATE: 'rgba(191, 219, 254, 0.5)',
    ZoneType.SERVICE: 'rgba(254, 215, 170, 0.6)',
    ZoneType.PLATFORM: 'rgba(221, 214, 254, 0.6)',
}

LOAD_COLORS = {'green': '#22c55e', 'amber': '#f59e0b', 'red': '#ef4444'}


def zone_shapes(zones: List[Zone]) -> List[dict]:
    """Rectangles for every zone, non-walkable ones dashed"""
    shapes = []
    for zone in zones:
        shapes.append({
            'type': 'rect',
            'x0': zone.x, 'y0': zone.y,
            'x1': zone.x + zone.width, 'y1': zone.y + zone.height,
            'fillcolor': ZONE_FILLS.get(zone.zone_type, 'rgba(0, 0, 0, 0.05)'),
            'line': {'color': 'gray', 'width': 1, 'dash': 'solid' if zone.walkable else 'dot'},
            'layer': 'below',
        })
    return shapes


def heatmap_trace(cells: List[HeatmapCell], cell_size: float) -> go.Scatter:
    return go.Scatter(
        x=[c.x for c in cells],
        y=[c.y for c in cells],
        mode='markers',
        marker={
            'size': cell_size,
            'color': [c.color for c in cells],
            'opacity': [0.2 + 0.5 * c.intensity / 100 for c in cells],
        },
        name='Density',
        hovertemplate='Intensity: %{text}<extra></extra>',
        text=[f'{c.intensity:.0f}' for c in cells],
    )


def agent_traces(agents: List[Agent], showlegend: bool = True) -> List[go.Scatter]:
    """One scatter trace per status"""
    traces = []
    for status, color in STATUS_COLORS.items():
        group = [a for a in agents if a.status == status]
        traces.append(go.Scatter(
            x=[a.x for a in group],
            y=[a.y for a in group],
            mode='markers',
            marker={'size': 5, 'color': color, 'opacity': 0.9},
            name=f'{status.value.capitalize()} ({len(group)})',
            showlegend=showlegend,
            hoverinfo='skip',
        ))
    return traces


class TerminalVisualizer:
    """Handles all visualization for a terminal simulation"""

    def __init__(self, simulation):
        """
        Initialize visualizer with simulation object.

        Args:
            simulation: TerminalSimulation instance
        """
        self.sim = simulation
        self.zones = simulation.context.zones
        self.profile = simulation.profile

    def _layout(self, title: str) -> dict:
        heat = self.profile.heatmap
        x0, y0 = heat.origin
        width, height = heat.extent
        return {
            'title': {'text': title, 'x': 0.5, 'xanchor': 'center'},
            'shapes': zone_shapes(self.zones),
            'xaxis': {'range': [x0, x0 + width], 'showgrid': False},
            # Screen coordinates: y grows downward
            'yaxis': {'range': [y0 + height, y0], 'scaleanchor': 'x', 'showgrid': False},
            'plot_bgcolor': 'white',
            'height': 650,
        }

    def _cell_marker_size(self) -> float:
        heat = self.profile.heatmap
        return max(4.0, min(heat.extent) / heat.grid_size * 0.9)

    def create_snapshot_figure(self) -> go.Figure:
        """Zones, density cells and agents at the current instant"""
        stats = self.sim.get_statistics()
        cells = self.sim.heatmap()

        traces = [heatmap_trace(cells, self._cell_marker_size())]
        traces.extend(agent_traces(self.sim.snapshot()))

        fig = go.Figure(data=traces)
        fig.update_layout(**self._layout(
            f'<b>{self.sim.site_id} - Real-Time Heatmap</b><br>'
            f'<sup>t={stats["time_ms"] / 1000:.1f}s | People: {stats["total_people"]} | '
            f'Target: {stats["target_count"]}</sup>'
        ))
        return fig

    def create_animation(self, num_frames: int = 60, frame_ms: float = 500.0) -> go.Figure:
        """
        Advance the simulation and record one frame every ``frame_ms``.

        Args:
            num_frames: Number of frames to capture
            frame_ms: Simulated milliseconds between frames
        """
        print("\n🎬 Creating animation...")
        was_playing = self.sim.is_playing
        self.sim.play()

        frames = []
        for i in range(num_frames):
            if i > 0:
                self.sim.advance(frame_ms)
            traces = [heatmap_trace(self.sim.heatmap(), self._cell_marker_size())]
            traces.extend(agent_traces(self.sim.snapshot(), showlegend=(i == 0)))
            frames.append(go.Frame(data=traces, name=str(i)))

        if not was_playing:
            self.sim.pause()

        fig = go.Figure(data=frames[0].data if frames else [], frames=frames)
        fig.update_layout(**self._layout(f'<b>{self.sim.site_id} - Crowd Animation</b>'))
        fig.update_layout(
            updatemenus=[{
                'type': 'buttons',
                'showactive': False,
                'buttons': [
                    {'label': 'Play', 'method': 'animate',
                     'args': [None, {'frame': {'duration': 100, 'redraw': True},
                                     'fromcurrent': True}]},
                    {'label': 'Pause', 'method': 'animate',
                     'args': [[None], {'frame': {'duration': 0, 'redraw': False},
                                       'mode': 'immediate'}]},
                ],
            }]
        )
        print(f"✓ Animation created ({len(frames)} frames)")
        return fig


def create_fleet_figure(vehicles: List[Vehicle]) -> go.Figure:
    """Loop positions and load per vehicle side by side"""
    fig = make_subplots(rows=1, cols=2, subplot_titles=('Loop Positions', 'Vehicle Load'),
                        specs=[[{'type': 'polar'}, {'type': 'xy'}]])

    # Stations around the loop
    fig.add_trace(go.Scatterpolar(
        r=[1.0] * len(STATIONS),
        theta=[s.position / LOOP_LENGTH * 360 for s in STATIONS],
        mode='markers+text',
        text=[s.name for s in STATIONS],
        marker={'size': 8, 'color': 'gray'},
        name='Stations',
    ), row=1, col=1)

    for direction, radius in ((Direction.CLOCKWISE, 0.85), (Direction.COUNTER_CLOCKWISE, 0.7)):
        group = [v for v in vehicles if v.direction == direction]
        fig.add_trace(go.Scatterpolar(
            r=[radius] * len(group),
            theta=[v.position / LOOP_LENGTH * 360 for v in group],
            mode='markers',
            marker={'size': 12, 'color': [LOAD_COLORS[load_band(load_percentage(v))] for v in group]},
            text=[v.id for v in group],
            name=direction.value,
        ), row=1, col=1)

    loads = [load_percentage(v) for v in vehicles]
    fig.add_trace(go.Bar(
        x=[v.id for v in vehicles],
        y=loads,
        marker={'color': [LOAD_COLORS[load_band(p)] for p in loads]},
        name='Load %',
    ), row=1, col=2)

    fig.update_layout(title={'text': '<b>APM Fleet</b>', 'x': 0.5}, height=500)
    fig.update_yaxes(range=[0, 100], title_text='Load %', row=1, col=2)
    return fig


# ==================== CONVENIENCE FUNCTIONS ====================

def show_snapshot(simulation) -> go.Figure:
    """Create and show the current snapshot"""
    fig = TerminalVisualizer(simulation).create_snapshot_figure()
    fig.show()
    return fig


def save_snapshot(simulation, filepath: str) -> go.Figure:
    """Write the current snapshot to an HTML file"""
    fig = TerminalVisualizer(simulation).create_snapshot_figure()
    fig.write_html(filepath)
    print(f"✓ Snapshot saved to {filepath}")
    return fig
