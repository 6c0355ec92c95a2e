"""
TEST: Portal Frame Equilibrium and Stability
===========================================

This test validates that the portal frame solver:
1. Does not flag a mechanism (structure is stable)
2. Produces finite, nonzero drift under lateral load
3. Satisfies global equilibrium (forces and moments balance)
"""

import logging

import numpy as np

from femcore import (
    Constraint,
    Dof,
    Element,
    ElementProperties,
    ElementType,
    Load,
    Material,
    Model,
    Node,
    StaticSolver,
)


L, H = 6.0, 3.0
P = 5000.0   # Lateral load
Q = -8000.0  # Gravity load on each beam-column joint


def make_portal_frame() -> Model:
    model = Model(name="portal")
    model.add_material(Material.linear_elastic(1, "steel", 210e9, 0.3))

    model.add_node(Node(0, 0.0, 0.0))
    model.add_node(Node(1, 0.0, H))
    model.add_node(Node(2, L, H))
    model.add_node(Node(3, L, 0.0))

    props = ElementProperties.beam_2d(0.01, 8.0e-6)
    model.add_element(Element(1, ElementType.FRAME_2D, (0, 1), 1, props))
    model.add_element(Element(2, ElementType.FRAME_2D, (1, 2), 1, props))
    model.add_element(Element(3, ElementType.FRAME_2D, (2, 3), 1, props))

    # Pinned bases
    model.add_constraint(Constraint.pinned_support(1, 0))
    model.add_constraint(Constraint.pinned_support(2, 3))

    model.add_load(Load.nodal_force(1, 1, Dof.UX, P))
    model.add_load(Load.nodal_force(2, 1, Dof.UY, Q))
    model.add_load(Load.nodal_force(3, 2, Dof.UY, Q))
    return model


def test_portal_frame_stability(caplog):
    """Test that portal frame is stable (no mechanism)."""
    with caplog.at_level(logging.WARNING, logger="femcore"):
        results = StaticSolver().solve(make_portal_frame())

    assert not any("ill-conditioned" in r.getMessage() for r in caplog.records)
    assert results.auto_constrained_dofs == []


def test_portal_frame_drift():
    results = StaticSolver().solve(make_portal_frame())

    drift_left = results.node_displacement(1, Dof.UX)
    drift_right = results.node_displacement(2, Dof.UX)

    assert np.isfinite(drift_left)
    assert drift_left > 0, "Frame should sway in the direction of the lateral load"
    # the beam is axially stiff: both joints sway together
    assert np.isclose(drift_left, drift_right, rtol=1e-3)


def test_portal_frame_equilibrium():
    """Test that reactions balance applied loads."""
    model = make_portal_frame()
    results = StaticSolver().solve(model)

    Rx = results.node_reaction(0, Dof.UX) + results.node_reaction(3, Dof.UX)
    Ry = results.node_reaction(0, Dof.UY) + results.node_reaction(3, Dof.UY)
    assert np.isclose(Rx, -P, rtol=1e-6), f"ΣRx={Rx:.2f} N, expected {-P:.2f} N"
    assert np.isclose(Ry, -2 * Q, rtol=1e-6), f"ΣRy={Ry:.2f} N, expected {-2 * Q:.2f} N"

    # Moments about the origin from reactions and applied loads
    M = 0.0
    for node_id, node in model.nodes.items():
        M += node.x * results.node_reaction(node_id, Dof.UY)
        M -= node.y * results.node_reaction(node_id, Dof.UX)
        M += results.node_reaction(node_id, Dof.RZ)
    M += -H * P + L * Q
    assert np.isclose(M, 0.0, atol=1e-3), f"Moment equilibrium violated: ΣM={M:.2e}"


def test_portal_frame_base_reactions():
    """
    Equal pinned columns share the lateral load equally, and the overturning
    moment P·H is carried by a vertical couple P·H/L at the bases.
    """
    results = StaticSolver().solve(make_portal_frame())

    assert np.isclose(results.node_reaction(0, Dof.UX), -P / 2, rtol=1e-3)
    assert np.isclose(results.node_reaction(3, Dof.UX), -P / 2, rtol=1e-3)

    couple = P * H / L
    assert np.isclose(results.node_reaction(0, Dof.UY), -Q - couple, rtol=1e-3)
    assert np.isclose(results.node_reaction(3, Dof.UY), -Q + couple, rtol=1e-3)
