"""
Reader for FMI/JModelica style XML model descriptions.

The reader consumes an attribute tree through the AttributeNode protocol.
ElementNode adapts the standard library ElementTree to that protocol; any
other tree offering the same methods can be read as well.

Namespace prefixes (``exp:``, ``equ:``, ``opt:``) are ignored when matching
element names.
"""

import math
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator, Optional, Protocol, Union, runtime_checkable

from flatocp.errors import ParseDomainError
from flatocp.backends.casadi import CasadiConverter
from flatocp.ir.expr import TAG_KINDS, Expr, ExprKind
from flatocp.ir.names import QualifiedNamePart, canonical_name, format_qualified_name
from flatocp.ir.types import (
    ALIAS_NAMES,
    CAUSALITY_NAMES,
    VARIABILITY_NAMES,
    Alias,
    Causality,
    Variability,
)
from flatocp.ir.variable import Variable
from flatocp.logging import logger, timed
from flatocp.ocp.model import FlatOcp
from flatocp.ocp.options import OcpOptions


@runtime_checkable
class AttributeNode(Protocol):
    """Node of an attribute tree."""

    @property
    def name(self) -> str: ...

    @property
    def text(self) -> str: ...

    def attribute(self, key: str) -> str: ...

    def has_attribute(self, key: str) -> bool: ...

    def child(self, name: str) -> "AttributeNode": ...

    def has_child(self, name: str) -> bool: ...

    def __getitem__(self, index: int) -> "AttributeNode": ...

    def __len__(self) -> int: ...

    def __iter__(self) -> Iterator["AttributeNode"]: ...


def _local_name(tag: str) -> str:
    """Strip a ``{namespace}`` or ``prefix:`` qualifier."""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    if ":" in tag:
        tag = tag.rsplit(":", 1)[1]
    return tag


class ElementNode:
    """AttributeNode over an ``xml.etree.ElementTree.Element``."""

    def __init__(self, element: ET.Element) -> None:
        self._element = element
        self._children = [ElementNode(e) for e in element]

    @property
    def name(self) -> str:
        return _local_name(self._element.tag)

    @property
    def text(self) -> str:
        return (self._element.text or "").strip()

    def attribute(self, key: str) -> str:
        if key not in self._element.attrib:
            raise ParseDomainError(f"Element '{self.name}' has no attribute '{key}'")
        return self._element.attrib[key]

    def has_attribute(self, key: str) -> bool:
        return key in self._element.attrib

    def child(self, name: str) -> "ElementNode":
        local = _local_name(name)
        for c in self._children:
            if c.name == local:
                return c
        raise ParseDomainError(f"Element '{self.name}' has no child '{local}'")

    def has_child(self, name: str) -> bool:
        local = _local_name(name)
        return any(c.name == local for c in self._children)

    def __getitem__(self, index: int) -> "ElementNode":
        try:
            return self._children[index]
        except IndexError:
            raise ParseDomainError(
                f"Element '{self.name}' has {len(self._children)} children, index {index} requested"
            ) from None

    def __len__(self) -> int:
        return len(self._children)

    def __iter__(self) -> Iterator["ElementNode"]:
        return iter(self._children)

    def __repr__(self) -> str:
        return f"ElementNode({self.name!r})"


def _float(text: str, what: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise ParseDomainError(f"Cannot read {what} from '{text}'") from None


def _enum_attribute(node: AttributeNode, key: str, table: dict, default):
    if not node.has_attribute(key):
        return default
    value = node.attribute(key)
    if value not in table:
        raise ParseDomainError(f"Unknown {key}: '{value}'")
    return table[value]


class FmiXmlReader:
    """
    Build a FlatOcp from a model description tree.

    The sections are read in the order ModelVariables, BindingEquations,
    DynamicEquations, InitialEquations and Optimization. Variables are then
    sorted into roles and the equation dimensions are checked.
    """

    def __init__(self, root: AttributeNode, options: Optional[OcpOptions] = None) -> None:
        self.root = root
        self.ocp = FlatOcp(options)
        self.converter = CasadiConverter(self.ocp.registry, self.ocp.t)

    def read(self) -> FlatOcp:
        """Read the whole document."""
        with timed("Parsing XML"):
            self.add_model_variables()
            if self.root.has_child("BindingEquations"):
                self.add_binding_equations()
            if self.root.has_child("DynamicEquations"):
                self.add_dynamic_equations()
            if self.root.has_child("InitialEquations"):
                self.add_initial_equations()
            if self.root.has_child("Optimization"):
                self.add_optimization()
            self.ocp.sort_type()
            self.ocp.check_dimensions()
        return self.ocp

    # Names and expressions

    def qualified_name(self, node: AttributeNode) -> str:
        """Qualified name from a list of QualifiedNamePart elements."""
        parts = []
        for part in node:
            subscripts: tuple[int, ...] = ()
            if len(part) > 0:
                lit = part.child("ArraySubscripts").child("IndexExpression").child("IntegerLiteral")
                subscripts = (int(lit.text),)
            parts.append(QualifiedNamePart(part.attribute("name"), subscripts))
        if not parts:
            raise ParseDomainError(f"Empty qualified name in element '{node.name}'")
        return format_qualified_name(tuple(parts))

    def read_expr(self, node: AttributeNode) -> Expr:
        """Read an expression element into an Expr tree."""
        tag = node.name
        if tag == "StringLiteral":
            raise ParseDomainError(f"String literals are not supported: '{node.text}'")
        kind = TAG_KINDS.get(tag)
        if kind is None:
            raise ParseDomainError(f"Unknown expression node: '{tag}'")

        if kind == ExprKind.INTEGER_LITERAL:
            try:
                return Expr(kind, value=int(node.text))
            except ValueError:
                raise ParseDomainError(f"Bad integer literal: '{node.text}'") from None
        if kind == ExprKind.REAL_LITERAL:
            return Expr(kind, value=_float(node.text, "real literal"))
        if kind == ExprKind.IDENTIFIER:
            return Expr(kind, name=self.qualified_name(node))
        if kind == ExprKind.DER:
            return Expr(kind, name=self.qualified_name(node[0]))
        if kind == ExprKind.TIME:
            return Expr(kind)
        if kind == ExprKind.TIMED_VARIABLE:
            return Expr(
                kind,
                name=self.qualified_name(node[0]),
                value=_float(node[1].text, "time point"),
            )
        return Expr(kind, children=tuple(self.read_expr(c) for c in node))

    def convert(self, node: AttributeNode):
        """Read an expression element and convert it to CasADi."""
        return self.converter.convert(self.read_expr(node))

    # Sections

    def add_model_variables(self) -> None:
        for vnode in self.root.child("ModelVariables"):
            alias = _enum_attribute(vnode, "alias", ALIAS_NAMES, Alias.NO_ALIAS)
            if alias != Alias.NO_ALIAS:
                continue

            if vnode.has_child("QualifiedName"):
                name = self.qualified_name(vnode.child("QualifiedName"))
            else:
                name = canonical_name(vnode.attribute("name"))
            if name in self.ocp.registry:
                continue

            var = Variable(
                name,
                variability=_enum_attribute(
                    vnode, "variability", VARIABILITY_NAMES, Variability.CONTINUOUS
                ),
                causality=_enum_attribute(vnode, "causality", CAUSALITY_NAMES, Causality.INTERNAL),
                alias=alias,
            )
            if vnode.has_attribute("valueReference"):
                var.value_reference = int(vnode.attribute("valueReference"))
            if vnode.has_attribute("description"):
                var.description = vnode.attribute("description")

            if len(vnode) > 0 and vnode[0].name != "QualifiedName":
                self._read_properties(var, vnode[0])
            self.ocp.add_variable(name, var)

        logger.debug("Read %d model variables", len(self.ocp.registry))

    def _read_properties(self, var: Variable, props: AttributeNode) -> None:
        if props.has_attribute("unit"):
            var.unit = props.attribute("unit")
        if props.has_attribute("displayUnit"):
            var.display_unit = props.attribute("displayUnit")
        if props.has_attribute("min"):
            var.min_value = _float(props.attribute("min"), "min")
        if props.has_attribute("max"):
            var.max_value = _float(props.attribute("max"), "max")
        if props.has_attribute("start"):
            var.start = _float(props.attribute("start"), "start")
        if props.has_attribute("nominal"):
            nominal = _float(props.attribute("nominal"), "nominal")
            if nominal <= 0.0:
                raise ParseDomainError(
                    f"Variable '{var.name}' has a non-positive nominal value {nominal}"
                )
            var.nominal = nominal
        if props.has_attribute("free"):
            var.free = props.attribute("free") == "true"

    def add_binding_equations(self) -> None:
        for beq in self.root.child("BindingEquations"):
            var = self.ocp.variable(self.qualified_name(beq[0]))
            self.ocp.add_dependent(var, self.convert(beq[1][0]))

    def add_dynamic_equations(self) -> None:
        for dnode in self.root.child("DynamicEquations"):
            self.ocp.dae.append(self.convert(dnode[0]))

    def add_initial_equations(self) -> None:
        for inode in self.root.child("InitialEquations"):
            for enode in inode:
                self.ocp.initial.append(self.convert(enode))

    def add_optimization(self) -> None:
        opts = self.root.child("Optimization")
        for onode in opts:
            tag = onode.name
            if tag == "IntervalStartTime":
                self.ocp.t0 = _float(onode.child("Value").text, "start time")
            elif tag == "IntervalFinalTime":
                self.ocp.tf = _float(onode.child("Value").text, "final time")
            elif tag == "ObjectiveFunction":
                self.ocp.mterm.extend(self.convert(c) for c in onode)
            elif tag == "IntegrandObjectiveFunction":
                self.ocp.lterm.extend(self.convert(c) for c in onode)
            elif tag == "TimePoints":
                logger.debug("Ignoring TimePoints")
            elif tag == "Constraints":
                self.add_constraints(onode)
            else:
                raise ParseDomainError(f"Unknown optimization node: '{tag}'")

    def add_constraints(self, onode: AttributeNode) -> None:
        for cnode in onode:
            tag = cnode.name
            ex = self.convert(cnode[0])
            rhs = self.convert(cnode[1])
            if tag == "ConstraintLeq":
                self.ocp.add_path_constraint(ex - rhs, -math.inf, 0.0)
            elif tag == "ConstraintGeq":
                self.ocp.add_path_constraint(ex - rhs, 0.0, math.inf)
            elif tag == "ConstraintEq":
                self.ocp.add_path_constraint(ex - rhs, 0.0, 0.0)
            else:
                raise ParseDomainError(f"Unknown constraint type: '{tag}'")


def import_fmi_xml(path: Union[str, Path], options: Optional[OcpOptions] = None) -> FlatOcp:
    """
    Read a model description file into a FlatOcp.

    Example:
        >>> ocp = import_fmi_xml("cstr.xml")
        >>> ocp.init()
        >>> print(ocp)
    """
    tree = ET.parse(path)
    return FmiXmlReader(ElementNode(tree.getroot()), options).read()


def load_fmi_xml_string(text: str, options: Optional[OcpOptions] = None) -> FlatOcp:
    """Read a model description from a string."""
    return FmiXmlReader(ElementNode(ET.fromstring(text)), options).read()
