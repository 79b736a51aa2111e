"""Tests for Pydantic model validators on the SMOL IR."""

import pytest
from pydantic import ValidationError

from conftest import field, lit, var

from smol.model.expressions import BinaryExpr, LiteralExpr, ThisExpr
from smol.model.program import ClassDecl, FieldDecl, MethodDecl, Param, Program
from smol.model.statements import (
    Assignment,
    CallStatement,
    IfStatement,
    MemberStatement,
    NewStatement,
)
from smol.model.types import PrimitiveType, base_type, is_primitive


# ===========================================================================
# Statement targets
# ===========================================================================


class TestLocations:
    def test_variable_target(self):
        stmt = Assignment(target=var("x"), value=lit(1))
        assert stmt.target.name == "x"

    def test_field_target(self):
        stmt = Assignment(target=field("o", "f"), value=lit(1))
        assert stmt.target.field == "f"

    def test_literal_target_rejected(self):
        with pytest.raises(ValidationError, match="target must be a variable or a field access"):
            Assignment(target=lit(1), value=lit(2))

    def test_this_target_rejected(self):
        with pytest.raises(ValidationError, match="'this'"):
            NewStatement(target=ThisExpr(), class_name="C")

    def test_field_cannot_be_declared(self):
        with pytest.raises(ValidationError, match="can only declare a local variable"):
            Assignment(target=field("o", "f"), value=lit(1), declares="Int")

    def test_member_target_checked(self):
        with pytest.raises(ValidationError, match="Member target"):
            MemberStatement(target=lit(1), query=lit('"prog:C"'))


class TestCall:
    def test_call_without_target(self):
        stmt = CallStatement(callee=var("o"), method="m")
        assert stmt.target is None
        assert stmt.args == []

    def test_declaration_needs_target(self):
        with pytest.raises(ValidationError, match="cannot declare"):
            CallStatement(callee=var("o"), method="m", declares="Int")


# ===========================================================================
# Declarations
# ===========================================================================


class TestMethodDecl:
    def test_duplicate_params(self):
        with pytest.raises(ValidationError, match="Duplicate parameter 'a'"):
            MethodDecl(
                name="m",
                params=[Param(name="a", data_type="Int"), Param(name="a", data_type="Int")],
            )

    def test_abstract_with_body(self):
        with pytest.raises(ValidationError, match="Abstract method 'm' cannot have a body"):
            MethodDecl(name="m", abstract=True, body=[Assignment(target=var("x"), value=lit(1))])


class TestClassDecl:
    def test_duplicate_fields(self):
        with pytest.raises(ValidationError, match="Duplicate field 'f'"):
            ClassDecl(
                name="C",
                fields=[FieldDecl(name="f", data_type="Int"), FieldDecl(name="f", data_type="Int")],
            )

    def test_duplicate_methods(self):
        with pytest.raises(ValidationError, match="Duplicate method 'm'"):
            ClassDecl(name="C", methods=[MethodDecl(name="m"), MethodDecl(name="m")])

    def test_extends_itself(self):
        with pytest.raises(ValidationError, match="cannot extend itself"):
            ClassDecl(name="C", extends="C")


# ===========================================================================
# Discriminated unions
# ===========================================================================


class TestParsing:
    def test_program_from_dicts(self):
        program = Program.model_validate({
            "classes": [{"name": "C", "fields": [{"name": "f", "data_type": "Int"}]}],
            "main": [
                {
                    "kind": "new",
                    "target": {"kind": "variable_ref", "name": "c"},
                    "class_name": "C",
                    "args": [{"kind": "literal", "value": "1", "data_type": "Int"}],
                    "declares": "C",
                },
                {
                    "kind": "if",
                    "condition": {
                        "kind": "binary",
                        "op": "GT",
                        "left": {
                            "kind": "field_access",
                            "target": {"kind": "variable_ref", "name": "c"},
                            "field": "f",
                        },
                        "right": {"kind": "literal", "value": "0"},
                    },
                    "then_body": [{"kind": "skip"}],
                },
            ],
        })
        new_stmt, if_stmt = program.main
        assert isinstance(new_stmt, NewStatement)
        assert new_stmt.args[0] == LiteralExpr(value="1", data_type=PrimitiveType.INT)
        assert isinstance(if_stmt, IfStatement)
        assert isinstance(if_stmt.condition, BinaryExpr)
        assert if_stmt.else_body == []

    def test_round_trip(self):
        program = Program(main=[Assignment(target=var("x"), value=lit(3), declares="Int")])
        assert Program.model_validate(program.model_dump()) == program

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            Program.model_validate({"main": [{"kind": "goto", "label": "x"}]})


class TestTypeNames:
    def test_base_type_strips_generics(self):
        assert base_type("List<Rock>") == "List"
        assert base_type("Rock") == "Rock"

    def test_is_primitive(self):
        assert is_primitive("Int")
        assert is_primitive("Double")
        assert not is_primitive("List<Int>")
        assert not is_primitive("Rock")
