import pytest

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
)


def build_bridge(height=0.5, P=10e3):
    """
    Three-bar truss: two legs meeting at an apex, tied by a bottom chord.

        1 (1, h)
       / \\
      0---2      pinned at 0, roller (uy) at 2, -P on node 1
    """
    model = Model(name="bridge")
    model.add_material(Material.steel(1))
    model.add_node(Node(0, 0.0, 0.0))
    model.add_node(Node(1, 1.0, height))
    model.add_node(Node(2, 2.0, 0.0))
    props = ElementProperties.truss(0.005)
    model.add_element(Element(1, ElementType.TRUSS_2D, (0, 1), 1, props))
    model.add_element(Element(2, ElementType.TRUSS_2D, (1, 2), 1, props))
    model.add_element(Element(3, ElementType.TRUSS_2D, (0, 2), 1, props))
    model.add_constraint(Constraint.pinned_support(1, 0))
    model.add_constraint(Constraint.roller_support_y(2, 2))
    model.add_load(Load.nodal_force(1, 1, Dof.UY, -P))
    return model


def build_cantilever(n_elements=1, L=3.0, E=210e9, I=8e-6, A=0.01, P=None):
    """Beam2D cantilever along x, fixed at node 0, optional tip load -P in uy."""
    model = Model(name="cantilever")
    model.add_material(Material.linear_elastic(1, "beam", E, 0.3, density=7850.0))
    for i in range(n_elements + 1):
        model.add_node(Node(i, L * i / n_elements, 0.0))
    props = ElementProperties.beam_2d(A, I)
    for i in range(n_elements):
        model.add_element(Element(i + 1, ElementType.BEAM_2D, (i, i + 1), 1, props))
    model.add_constraint(Constraint.fixed_support(1, 0))
    if P is not None:
        model.add_load(Load.nodal_force(1, n_elements, Dof.UY, -P))
    return model


@pytest.fixture
def bridge():
    return build_bridge()


@pytest.fixture
def cantilever():
    return build_cantilever(P=1000.0)
