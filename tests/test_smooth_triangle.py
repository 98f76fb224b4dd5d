"""Unit tests for smooth triangle intersection.

Tests cover:
- Edge vectors derived at construction
- Ray hitting the interior with valid barycentric coordinates
- Rays missing outside each edge
- Rays parallel to the plane and degenerate triangles
- Front and back face hits with identical t
- Vertex hits and barycentric normal interpolation
- Custom determinant threshold
"""

import math

import pytest
import taichi as ti

DEFAULT_TRIANGLE = (
    (0.0, 1.0, 0.0),
    (-1.0, 0.0, 0.0),
    (1.0, 0.0, 0.0),
    (0.0, 1.0, 0.0),
    (-1.0, 0.0, 0.0),
    (1.0, 0.0, 0.0),
)


def run_hit(origin, direction, triangle=DEFAULT_TRIANGLE, epsilon=None):
    """Run hit_smooth_triangle in a kernel and return the record as a dict."""
    from src.python.geometry.smooth_triangle import (
        EPSILON_BUMP,
        hit_smooth_triangle,
        make_smooth_triangle,
        vec3,
    )

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    point = ti.field(dtype=ti.math.vec3, shape=())
    u_val = ti.field(dtype=ti.f32, shape=())
    v_val = ti.field(dtype=ti.f32, shape=())
    verts = ti.Vector.field(3, dtype=ti.f32, shape=6)
    for k, value in enumerate(triangle):
        verts[k] = list(value)

    @ti.kernel
    def test_kernel(o: vec3, d: vec3, eps: ti.f32):
        tri = make_smooth_triangle(verts[0], verts[1], verts[2], verts[3], verts[4], verts[5])
        record = hit_smooth_triangle(o, d, tri, eps)
        hit[None] = record.hit
        t_val[None] = record.t
        point[None] = record.point
        u_val[None] = record.u
        v_val[None] = record.v

    test_kernel(
        vec3(*origin),
        vec3(*direction),
        EPSILON_BUMP if epsilon is None else epsilon,
    )
    p = point[None]
    return {
        "hit": hit[None],
        "t": t_val[None],
        "point": (p[0], p[1], p[2]),
        "u": u_val[None],
        "v": v_val[None],
    }


class TestSmoothTriangleBasics:
    """Tests for SmoothTriangle construction."""

    def test_make_smooth_triangle_derives_edges(self):
        """Test e1 = p2 - p1 and e2 = p3 - p1."""
        from src.python.geometry.smooth_triangle import make_smooth_triangle, vec3

        e1 = ti.field(dtype=ti.math.vec3, shape=())
        e2 = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            tri = make_smooth_triangle(
                vec3(0.0, 1.0, 0.0),
                vec3(-1.0, 0.0, 0.0),
                vec3(1.0, 0.0, 0.0),
                vec3(0.0, 1.0, 0.0),
                vec3(-1.0, 0.0, 0.0),
                vec3(1.0, 0.0, 0.0),
            )
            e1[None] = tri.e1
            e2[None] = tri.e2

        test_kernel()
        assert tuple(e1[None][k] for k in range(3)) == pytest.approx((-1.0, -1.0, 0.0))
        assert tuple(e2[None][k] for k in range(3)) == pytest.approx((1.0, -1.0, 0.0))


class TestSmoothTriangleIntersection:
    """Tests for Möller–Trumbore intersection."""

    def test_hit_interior(self):
        """Test the canonical ray through the default triangle."""
        record = run_hit((0.0, 0.5, -2.0), (0.0, 0.0, 1.0))

        assert record["hit"] == 1
        assert abs(record["t"] - 2.0) < 1e-5
        assert abs(record["u"] - 0.25) < 1e-5
        assert abs(record["v"] - 0.25) < 1e-5
        assert record["point"] == pytest.approx((0.0, 0.5, 0.0), abs=1e-5)

    def test_miss_outside(self):
        """Test a ray aimed outside the triangle misses."""
        record = run_hit((1.0, 1.0, -2.0), (0.0, 0.0, 1.0))
        assert record["hit"] == 0

    @pytest.mark.parametrize(
        "origin",
        [
            (-1.0, 1.0, -2.0),  # beyond the p1-p2 edge
            (0.0, -1.0, -2.0),  # below the p2-p3 edge
        ],
    )
    def test_miss_past_edges(self, origin):
        """Test rays passing beyond each remaining edge miss."""
        record = run_hit(origin, (0.0, 0.0, 1.0))
        assert record["hit"] == 0

    @pytest.mark.parametrize(
        "direction",
        [
            (0.0, 1.0, 0.0),
            (1.0, 0.0, 0.0),
            (0.6, -0.8, 0.0),
        ],
    )
    def test_parallel_ray_misses(self, direction):
        """Test rays parallel to the plane never hit."""
        record = run_hit((0.0, 0.5, -2.0), direction)
        assert record["hit"] == 0

    def test_parallel_ray_in_plane_misses(self):
        """Test a ray lying inside the triangle's plane misses."""
        record = run_hit((-2.0, 0.5, 0.0), (1.0, 0.0, 0.0))
        assert record["hit"] == 0

    def test_degenerate_triangle_always_misses(self):
        """Test a zero-area triangle is never hit."""
        collinear = (
            (0.0, 0.0, 0.0),
            (1.0, 0.0, 0.0),
            (2.0, 0.0, 0.0),
            (0.0, 0.0, 1.0),
            (0.0, 0.0, 1.0),
            (0.0, 0.0, 1.0),
        )
        for direction in [(0.0, 0.0, 1.0), (0.0, 1.0, 0.0), (0.3, 0.4, 0.5)]:
            record = run_hit((0.5, 0.0, -1.0), direction, triangle=collinear)
            assert record["hit"] == 0

    def test_front_and_back_face_same_t(self):
        """Test both faces are intersectable with identical t."""
        front = run_hit((0.0, 0.5, -2.0), (0.0, 0.0, 1.0))
        back = run_hit((0.0, 0.5, 2.0), (0.0, 0.0, -1.0))

        assert front["hit"] == 1
        assert back["hit"] == 1
        assert abs(front["t"] - back["t"]) < 1e-5
        assert abs(front["u"] - back["u"]) < 1e-5
        assert abs(front["v"] - back["v"]) < 1e-5

    def test_hit_behind_origin_reports_negative_t(self):
        """Test no t range is applied at the primitive level."""
        record = run_hit((0.0, 0.5, 2.0), (0.0, 0.0, 1.0))
        assert record["hit"] == 1
        assert abs(record["t"] + 2.0) < 1e-5

    @pytest.mark.parametrize(
        "origin, expected_u, expected_v",
        [
            ((0.0, 1.0, -2.0), 0.0, 0.0),
            ((-1.0, 0.0, -2.0), 1.0, 0.0),
            ((1.0, 0.0, -2.0), 0.0, 1.0),
        ],
    )
    def test_vertex_hits(self, origin, expected_u, expected_v):
        """Test rays through each vertex hit with the vertex's barycentrics."""
        record = run_hit(origin, (0.0, 0.0, 1.0))
        assert record["hit"] == 1
        assert abs(record["u"] - expected_u) < 1e-5
        assert abs(record["v"] - expected_v) < 1e-5

    @pytest.mark.parametrize(
        "origin, direction",
        [
            ((0.1, 0.3, -3.0), (0.0, 0.0, 1.0)),
            ((-0.2, 0.2, 5.0), (0.0, 0.0, -2.0)),
            ((1.0, 2.0, -4.0), (-0.25, -0.4, 1.0)),
            ((0.0, 0.0, -1.0), (0.3, 0.4, 1.0)),
        ],
    )
    def test_barycentric_invariants(self, origin, direction):
        """Test hits satisfy the barycentric range and point = origin + t * dir."""
        record = run_hit(origin, direction)
        assert record["hit"] == 1
        u, v, t = record["u"], record["v"], record["t"]
        assert 0.0 <= u <= 1.0
        assert 0.0 <= v <= 1.0
        assert u + v <= 1.0 + 1e-6
        expected = tuple(origin[k] + t * direction[k] for k in range(3))
        assert record["point"] == pytest.approx(expected, abs=1e-5)
        # The point lies on the triangle: p1 + u * e1 + v * e2
        on_face = (-u + v, 1.0 - u - v, 0.0)
        assert record["point"] == pytest.approx(on_face, abs=1e-5)

    def test_epsilon_is_a_parameter(self):
        """Test a larger threshold rejects a shallow grazing ray."""
        origin = (-0.5, 0.5, -0.005)
        direction = (1.0, 0.0, 0.01)
        # det = -2 * direction.z = -0.02
        assert run_hit(origin, direction)["hit"] == 1
        assert run_hit(origin, direction, epsilon=0.05)["hit"] == 0


class TestNormalInterpolation:
    """Tests for barycentric normal interpolation."""

    def _interpolate(self, u, v, triangle=DEFAULT_TRIANGLE):
        from src.python.geometry.smooth_triangle import interpolate_normal, make_smooth_triangle

        verts = ti.Vector.field(3, dtype=ti.f32, shape=6)
        for k, value in enumerate(triangle):
            verts[k] = list(value)
        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel(u_val: ti.f32, v_val: ti.f32):
            tri = make_smooth_triangle(verts[0], verts[1], verts[2], verts[3], verts[4], verts[5])
            result[None] = interpolate_normal(tri, u_val, v_val)

        test_kernel(u, v)
        r = result[None]
        return (r[0], r[1], r[2])

    @pytest.mark.parametrize(
        "u, v, expected",
        [
            (0.0, 0.0, (0.0, 1.0, 0.0)),
            (1.0, 0.0, (-1.0, 0.0, 0.0)),
            (0.0, 1.0, (1.0, 0.0, 0.0)),
        ],
    )
    def test_vertex_normals(self, u, v, expected):
        """Test the normal at each vertex is that vertex's normal."""
        assert self._interpolate(u, v) == pytest.approx(expected, abs=1e-5)

    def test_vertex_normals_are_normalized(self):
        """Test non-unit vertex normals come back unit length."""
        scaled = DEFAULT_TRIANGLE[:3] + ((0.0, 3.0, 0.0), (-2.0, 0.0, 0.0), (0.0, 0.0, 5.0))
        assert self._interpolate(0.0, 0.0, scaled) == pytest.approx((0.0, 1.0, 0.0), abs=1e-5)
        assert self._interpolate(0.0, 1.0, scaled) == pytest.approx((0.0, 0.0, 1.0), abs=1e-5)

    def test_interior_blend(self):
        """Test the normal at the canonical hit point."""
        assert self._interpolate(0.25, 0.25) == pytest.approx((0.0, 1.0, 0.0), abs=1e-5)

    def test_edge_midpoint(self):
        """Test halfway between p1 and p2 blends n1 and n2 evenly."""
        n = self._interpolate(0.5, 0.0)
        s = 1.0 / math.sqrt(2.0)
        assert n == pytest.approx((-s, s, 0.0), abs=1e-5)
