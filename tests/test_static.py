import logging

import numpy as np
import pytest

from femcore import (
    AnalysisSettings,
    AnalysisType,
    Constraint,
    Dof,
    DofConstraint,
    Element,
    ElementProperties,
    ElementType,
    InvalidReferenceError,
    Load,
    LoadCombination,
    Material,
    MaterialProperties,
    MaterialType,
    Model,
    Node,
    SolverType,
    StaticSolver,
    UnsupportedError,
    ValidationError,
)

from conftest import build_bridge


def axial_bar(P=1000.0, A=1e-4, E=200e9, L=2.0):
    """Single 2D truss bar along x: pinned at 0, roller (uy) at 1, +P at the free end."""
    model = Model(name="bar")
    model.add_material(Material.linear_elastic(1, "steel", E, 0.3))
    model.add_node(Node(0, 0.0, 0.0))
    model.add_node(Node(1, L, 0.0))
    model.add_element(Element(1, ElementType.TRUSS_2D, (0, 1), 1, ElementProperties.truss(A)))
    model.add_constraint(Constraint.pinned_support(1, 0))
    model.add_constraint(Constraint.roller_support_y(2, 1))
    model.add_load(Load.nodal_force(1, 1, Dof.UX, P))
    return model


def frame3d_cantilever(end=(2.0, 0.0, 0.0)):
    """Frame3D member from the origin to `end`, fixed at the origin."""
    model = Model(name="frame3d")
    model.add_material(Material.steel(1))
    model.add_node(Node(0, 0.0, 0.0, 0.0))
    model.add_node(Node(1, *end))
    props = ElementProperties.beam(area=0.01, inertia_y=2e-5, inertia_z=8e-6, torsional_constant=1e-5)
    model.add_element(Element(1, ElementType.FRAME_3D, (0, 1), 1, props))
    model.add_constraint(Constraint.fixed_support(1, 0))
    return model


class TestTruss:

    def test_axial_bar_extension(self):
        P, A, E, L = 1000.0, 1e-4, 200e9, 2.0
        results = StaticSolver().solve(axial_bar(P, A, E, L))

        assert np.isclose(results.node_displacement(1, Dof.UX), P * L / (A * E), rtol=1e-4)
        assert np.isclose(results.element_forces[1].axial, P, rtol=1e-4)
        assert np.isclose(results.node_reaction(0, Dof.UX), -P, rtol=1e-6)
        assert results.convergence_info.converged

    def test_bridge_member_forces(self, bridge):
        """
        Apex load 10 kN on a 1 m / 0.5 m triangle:
            legs:  N = -P / (2 sin θ) = -11180.3 N (compression)
            chord: N = +10000 N (tension)
        """
        results = StaticSolver().solve(bridge)

        assert np.isclose(results.element_forces[1].axial, -11180.34, rtol=1e-5)
        assert np.isclose(results.element_forces[2].axial, -11180.34, rtol=1e-5)
        assert np.isclose(results.element_forces[3].axial, 10000.0, rtol=1e-5)

        Ry = results.node_reaction(0, Dof.UY) + results.node_reaction(2, Dof.UY)
        assert np.isclose(Ry, 10e3, rtol=1e-8)
        assert np.isclose(results.node_reaction(0, Dof.UY), 5e3, rtol=1e-6)
        assert abs(results.node_reaction(0, Dof.UX)) < 1e-3

    def test_bridge_strain_energy_uses_unconstrained_K(self, bridge):
        solver = StaticSolver()
        system = solver.assemble_system(bridge)
        results = solver.solve(bridge)
        u = results.displacements
        assert np.isclose(results.strain_energy, 0.5 * u @ system.K @ u, rtol=1e-12)

    def test_zero_load_gives_zero_response(self, bridge, caplog):
        bridge.loads.clear()
        with caplog.at_level(logging.WARNING, logger="femcore"):
            results = StaticSolver().solve(bridge)
        assert results.max_displacement() == 0.0
        assert results.strain_energy == 0.0
        assert any("no loads" in r.getMessage() for r in caplog.records)


class TestBeams:

    def test_simply_supported_midspan_point_load(self):
        """
        δ = P·L³ / (48·E·I) at midspan, each support carries P/2.
        """
        L, E, I, P = 4.0, 210e9, 8e-6, 1000.0
        model = Model()
        model.add_material(Material.linear_elastic(1, "steel", E, 0.3))
        for i, x in enumerate([0.0, L / 2, L]):
            model.add_node(Node(i, x, 0.0))
        props = ElementProperties.beam_2d(0.01, I)
        model.add_element(Element(1, ElementType.BEAM_2D, (0, 1), 1, props))
        model.add_element(Element(2, ElementType.BEAM_2D, (1, 2), 1, props))
        model.add_constraint(Constraint.pinned_support(1, 0))
        model.add_constraint(Constraint.roller_support_y(2, 2))
        model.add_load(Load.nodal_force(1, 1, Dof.UY, -P))

        results = StaticSolver().solve(model)

        assert np.isclose(results.node_displacement(1, Dof.UY), -P * L**3 / (48 * E * I), rtol=1e-3)
        assert np.isclose(results.node_reaction(0, Dof.UY), P / 2, rtol=1e-6)
        assert np.isclose(results.node_reaction(2, Dof.UY), P / 2, rtol=1e-6)
        # symmetric: end rotations equal and opposite
        assert np.isclose(results.node_displacement(0, Dof.RZ), -results.node_displacement(2, Dof.RZ), rtol=1e-6)

    def test_node_constraints_match_constraint_objects(self):
        """Node-level DofConstraints are enforced exactly like Constraint objects."""
        L, P = 3.0, 1000.0
        model = Model()
        model.add_material(Material.steel(1))
        fixed = tuple(DofConstraint.fixed(d) for d in (Dof.UX, Dof.UY, Dof.RZ))
        model.add_node(Node(0, 0.0, 0.0, constraints=fixed))
        model.add_node(Node(1, L, 0.0))
        model.add_element(Element(1, ElementType.BEAM_2D, (0, 1), 1, ElementProperties.beam_2d(0.01, 8e-6)))
        model.add_load(Load.nodal_force(1, 1, Dof.UY, -P))

        results = StaticSolver().solve(model)
        assert np.isclose(results.node_displacement(1, Dof.UY), -P * L**3 / (3 * 200e9 * 8e-6), rtol=1e-3)
        assert results.skipped_constraints == 0


class TestFrame3D:
    L, E, G = 2.0, 200e9, 200e9 / 2.6
    Iy, Iz, J = 2e-5, 8e-6, 1e-5

    def test_tip_load_along_z_bends_about_y(self):
        model = frame3d_cantilever()
        model.add_load(Load.nodal_force(1, 1, Dof.UZ, 1000.0))
        results = StaticSolver().solve(model)
        expected = 1000.0 * self.L**3 / (3 * self.E * self.Iy)
        assert np.isclose(results.node_displacement(1, Dof.UZ), expected, rtol=1e-3)
        assert abs(results.node_displacement(1, Dof.UY)) < 1e-9

    def test_tip_load_along_y_bends_about_z(self):
        model = frame3d_cantilever()
        model.add_load(Load.nodal_force(1, 1, Dof.UY, 1000.0))
        results = StaticSolver().solve(model)
        expected = 1000.0 * self.L**3 / (3 * self.E * self.Iz)
        assert np.isclose(results.node_displacement(1, Dof.UY), expected, rtol=1e-3)
        assert np.isclose(results.node_displacement(1, Dof.RZ), 1000.0 * self.L**2 / (2 * self.E * self.Iz), rtol=1e-3)

    def test_torsion(self):
        model = frame3d_cantilever()
        model.add_load(Load.nodal_force(1, 1, Dof.RX, 100.0))
        results = StaticSolver().solve(model)
        expected = 100.0 * self.L / (self.G * self.J)
        assert np.isclose(results.node_displacement(1, Dof.RX), expected, rtol=1e-3)
        assert np.isclose(results.element_forces[1].moment_x, -100.0, rtol=1e-6)

    def test_vertical_column_lateral_load(self):
        """Column along z: local y is global -x, so a load along x bends about Iz."""
        model = frame3d_cantilever(end=(0.0, 0.0, 2.0))
        model.add_load(Load.nodal_force(1, 1, Dof.UX, 1000.0))
        results = StaticSolver().solve(model)
        expected = 1000.0 * self.L**3 / (3 * self.E * self.Iz)
        assert np.isclose(results.node_displacement(1, Dof.UX), expected, rtol=1e-3)

    def test_axial_force_tension_positive(self):
        model = frame3d_cantilever()
        model.add_load(Load.nodal_force(1, 1, Dof.UX, 5000.0))
        results = StaticSolver().solve(model)
        assert np.isclose(results.element_forces[1].axial, 5000.0, rtol=1e-6)
        assert results.auto_constrained_dofs == []


class TestConstraintsAndLoads:

    def test_prescribed_displacement_is_reproduced(self):
        model = axial_bar(P=0.0)
        model.loads.clear()
        model.add_constraint(Constraint.prescribed_displacement(3, 1, Dof.UX, 0.001))

        results = StaticSolver().solve(model)

        assert np.isclose(results.node_displacement(1, Dof.UX), 0.001, rtol=1e-4)
        # force needed to stretch the bar by 1 mm: EA/L·δ = 1e7 · 1e-3
        assert np.isclose(results.element_forces[1].axial, 1e4, rtol=1e-4)
        assert np.isclose(results.node_reaction(1, Dof.UX), 1e4, rtol=1e-4)

    def test_load_combination_scales_response(self):
        model = build_bridge()
        model.loads.clear()
        model.add_load(Load.nodal_force(1, 1, Dof.UY, -1000.0, load_case="D"))
        model.add_load(Load.nodal_force(2, 1, Dof.UY, -1000.0, load_case="L"))

        base = StaticSolver(combination=LoadCombination("D", {"D": 1.0})).solve(model)
        combo = StaticSolver(combination=LoadCombination("1.2D+1.6L", {"D": 1.2, "L": 1.6})).solve(model)

        ratio = combo.node_displacement(1, Dof.UY) / base.node_displacement(1, Dof.UY)
        assert np.isclose(ratio, 2.8, rtol=1e-9)

    def test_superposition(self):
        """Linear analysis: response to A + B equals response to A plus response to B."""
        def solve_with(loads):
            model = build_bridge()
            model.loads.clear()
            for i, (d, p) in enumerate(loads, start=1):
                model.add_load(Load.nodal_force(i, 1, d, p))
            return StaticSolver().solve(model).displacements

        a = solve_with([(Dof.UY, -1000.0)])
        b = solve_with([(Dof.UX, 400.0)])
        ab = solve_with([(Dof.UY, -1000.0), (Dof.UX, 400.0)])
        np.testing.assert_allclose(ab, a + b, rtol=1e-9, atol=1e-15)


class TestSolverSettings:

    def test_iterative_solver_reports_iterations(self, bridge):
        """
        The penalty-constrained system is SPD; CG converges on this small
        well-scaled truss and the iteration count is reported.
        """
        bridge.analysis_settings = AnalysisSettings(solver_type=SolverType.ITERATIVE)
        direct = StaticSolver(AnalysisSettings()).solve(bridge)
        results = StaticSolver().solve(bridge)
        assert results.convergence_info.iterations >= 1
        np.testing.assert_allclose(results.displacements, direct.displacements, rtol=1e-4, atol=1e-9)

    def test_sparse_request_falls_back_to_direct(self, bridge, caplog):
        settings = AnalysisSettings(solver_type=SolverType.SPARSE)
        with caplog.at_level(logging.WARNING, logger="femcore"):
            results = StaticSolver(settings).solve(bridge)
        assert any("Sparse solver not available" in r.getMessage() for r in caplog.records)
        assert results.convergence_info.iterations == 1
        assert results.analysis_type is AnalysisType.STATIC

    def test_invalid_model_settings_rejected(self, bridge):
        bridge.analysis_settings = AnalysisSettings(tolerance=-1.0)
        with pytest.raises(ValidationError):
            StaticSolver().solve(bridge)
        # the model's own settings are still validated as part of the model
        with pytest.raises(ValidationError):
            StaticSolver(AnalysisSettings()).solve(bridge)


class TestFailures:

    def test_unconstrained_model(self):
        model = build_bridge()
        model.constraints.clear()
        with pytest.raises(ValidationError, match="nodal constraint"):
            StaticSolver().solve(model)

    def test_dangling_reference(self, bridge):
        bridge.elements[9] = Element(9, ElementType.TRUSS_2D, (0, 42), 1, ElementProperties.truss(0.01))
        with pytest.raises(InvalidReferenceError):
            StaticSolver().solve(bridge)

    def test_unsupported_element(self, bridge):
        bridge.add_node(Node(3, 0.0, 1.0))
        bridge.add_element(Element(9, ElementType.PLATE, (0, 1, 3), 1, ElementProperties.plate(0.01)))
        with pytest.raises(UnsupportedError):
            StaticSolver().solve(bridge)

    def test_nonlinear_material(self):
        model = axial_bar()
        model.materials[1] = Material(1, "plastic", MaterialType.PLASTIC,
                                      MaterialProperties(young_modulus=200e9, poisson_ratio=0.3))
        with pytest.raises(UnsupportedError):
            StaticSolver().solve(model)

    def test_empty_model(self):
        with pytest.raises(ValidationError, match="no nodes"):
            StaticSolver().solve(Model())
