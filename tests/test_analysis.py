import dataclasses

import numpy as np
import pytest

from femcore import (
    Analysis,
    AnalysisRunner,
    AnalysisType,
    Dof,
    InvalidReferenceError,
    ModelSummary,
    ParametricAnalysis,
    UnsupportedError,
    ValidationError,
)
from femcore.analysis import golden_section_search, minimize_displacement

from conftest import build_bridge, build_cantilever


def scale_modulus(material, value):
    props = dataclasses.replace(material.properties, young_modulus=value)
    return dataclasses.replace(material, properties=props)


class TestRunner:

    def test_static_dispatch(self, bridge):
        results = AnalysisRunner.run_analysis(bridge, AnalysisType.STATIC)
        assert results.analysis_type is AnalysisType.STATIC
        assert results.node_displacement(1, Dof.UY) < 0

    def test_modal_uses_model_settings(self):
        model = build_cantilever(n_elements=4, P=1000.0)
        model.analysis_settings.eigen_modes = 2
        results = AnalysisRunner.run_analysis(model, AnalysisType.MODAL)
        assert results.analysis_type is AnalysisType.MODAL
        assert len(results.frequencies) == 2

    @pytest.mark.parametrize("analysis_type", [AnalysisType.TIME_HISTORY, AnalysisType.BUCKLING])
    def test_unimplemented_analyses(self, cantilever, analysis_type):
        with pytest.raises(UnsupportedError):
            AnalysisRunner.run_analysis(cantilever, analysis_type)

    def test_batch_collects_failures(self, cantilever):
        n_loads = len(cantilever.loads)
        outcomes = AnalysisRunner.run_multiple_analyses(
            cantilever,
            [AnalysisType.STATIC, AnalysisType.BUCKLING, AnalysisType.MODAL],
            fail_fast=False,
        )

        assert [o.analysis_type for o in outcomes] == [
            AnalysisType.STATIC, AnalysisType.BUCKLING, AnalysisType.MODAL,
        ]
        assert outcomes[0].ok and outcomes[2].ok
        assert not outcomes[1].ok
        assert isinstance(outcomes[1].error, UnsupportedError)
        assert outcomes[1].results is None
        assert len(cantilever.loads) == n_loads

    def test_batch_fail_fast(self, cantilever):
        with pytest.raises(UnsupportedError):
            AnalysisRunner.run_multiple_analyses(
                cantilever, [AnalysisType.STATIC, AnalysisType.BUCKLING],
            )


class TestFacade:

    def test_static_and_run_agree(self, bridge):
        analysis = Analysis(bridge)
        a = analysis.static_analysis()
        b = analysis.run(AnalysisType.STATIC)
        np.testing.assert_allclose(a.displacements, b.displacements)

    def test_run_multiple_and_time_history(self, cantilever):
        analysis = Analysis(cantilever)
        outcomes = analysis.run_multiple([AnalysisType.STATIC, AnalysisType.MODAL])
        assert all(o.ok for o in outcomes)
        with pytest.raises(UnsupportedError):
            analysis.time_history_analysis(0.01, 1.0)

    def test_summary(self, bridge):
        summary = Analysis(bridge).model_summary()
        assert summary == ModelSummary.from_model(bridge)
        assert summary.num_nodes == 3
        assert summary.num_elements == 3
        assert summary.num_constraints == 2
        assert summary.total_dofs == 6
        assert summary.element_types == ["truss_2d"]
        assert summary.material_types == ["linear_elastic"]

        text = summary.format()
        assert text.startswith("Model Summary:")
        assert "Total DOFs: 6" in text

    def test_results_summary(self, bridge):
        results = Analysis(bridge).static_analysis()
        summary = results.summary()
        assert summary["analysis_type"] == "static"
        assert summary["max_displacement"] == pytest.approx(results.max_displacement())
        assert summary["strain_energy"] > 0
        assert summary["n_auto_constrained"] == 0


class TestParametric:

    def test_vary_material_property(self, bridge):
        E0 = bridge.materials[1].properties.young_modulus
        runs = ParametricAnalysis(bridge).vary_material_property(1, scale_modulus, [E0, 2 * E0])

        u1 = runs[0].node_displacement(1, Dof.UY)
        u2 = runs[1].node_displacement(1, Dof.UY)
        # displacement scales with 1/E, up to the support penalty springs
        assert np.isclose(u1 / u2, 2.0, rtol=1e-3)
        assert bridge.materials[1].properties.young_modulus == E0

    def test_vary_node_coordinate(self, bridge):
        runs = ParametricAnalysis(bridge).vary_node_coordinate(
            1, lambda n, v: dataclasses.replace(n, y=v), [0.5, 1.0],
        )
        # a taller truss is stiffer under an apex load
        assert abs(runs[1].node_displacement(1, Dof.UY)) < abs(runs[0].node_displacement(1, Dof.UY))
        assert bridge.nodes[1].y == 0.5

    def test_unknown_ids(self, bridge):
        study = ParametricAnalysis(bridge)
        with pytest.raises(InvalidReferenceError):
            study.vary_material_property(99, scale_modulus, [1.0])
        with pytest.raises(InvalidReferenceError):
            study.vary_node_coordinate(99, lambda n, v: n, [1.0])


class TestOptimization:

    def test_golden_section_on_parabola(self):
        x = golden_section_search(lambda v: (v - 1.3) ** 2, 0.0, 4.0, tolerance=1e-8)
        assert x == pytest.approx(1.3, abs=1e-7)

    @pytest.mark.parametrize("a, b, tol", [(1.0, 1.0, 1e-6), (2.0, 1.0, 1e-6), (0.0, 1.0, 0.0)])
    def test_golden_section_rejects_bad_input(self, a, b, tol):
        with pytest.raises(ValidationError):
            golden_section_search(lambda v: v, a, b, tolerance=tol)

    def test_optimal_bridge_height(self):
        """
        Apex deflection of the three-bar truss with half-span 1 goes as
        ((1 + h²)^1.5 + 1) / h², which is smallest at h = √3.
        """
        base = build_bridge()

        def set_height(model, h):
            model.nodes[1] = dataclasses.replace(model.nodes[1], y=h)

        h = minimize_displacement(base, (0.5, 3.0), set_height, tolerance=1e-3)
        assert abs(h - np.sqrt(3.0)) < 0.05
        assert base.nodes[1].y == 0.5
