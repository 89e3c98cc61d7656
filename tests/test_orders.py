"""
Tests for order validation and the order text parser.
"""

from conftest import place, setup

from diplomacy_adjudicator.core.map import Coast, Location, Power
from diplomacy_adjudicator.core.orders import (
    BuildOrder, ConvoyOrder, DisbandOrder, HoldOrder, MoveOrder, OrderParser,
    RetreatOrder, SupportHoldOrder, SupportMoveOrder, ValidationError, WaiveOrder
)
from diplomacy_adjudicator.core.position import (
    DislodgedUnit, Unit, UnitType, create_starting_position
)
from diplomacy_adjudicator.core.rules import BuildRule


def test_parse_basic_orders():
    position = create_starting_position()

    hold = OrderParser.parse_order("A Par H", position)
    assert isinstance(hold, HoldOrder)
    assert hold.power == Power.FRANCE

    move = OrderParser.parse_order("A Par-Bur", position)
    assert isinstance(move, MoveOrder)
    assert move.destination == Location("Bur")

    arrow = OrderParser.parse_order("A Mar -> Spa", position)
    assert arrow.destination == Location("Spa")

    coast = OrderParser.parse_order("F StP/sc - Bot", position)
    assert coast.unit.location == Location("StP", Coast.SOUTH)


def test_parse_support_and_convoy():
    position = create_starting_position()

    support_move = OrderParser.parse_order("A Mar S A Par - Bur", position)
    assert isinstance(support_move, SupportMoveOrder)
    assert support_move.supported == Location("Par")
    assert support_move.destination == Location("Bur")

    support_hold = OrderParser.parse_order("F Bre S A Par", position)
    assert isinstance(support_hold, SupportHoldOrder)

    setup(position, {Power.ENGLAND: ["F NTH"]})
    convoy = OrderParser.parse_order("F NTH C A Lvp - Nwy", position)
    assert isinstance(convoy, ConvoyOrder)
    assert convoy.convoyed == Location("Lvp")

    via = OrderParser.parse_order("A Lvp - Nwy via convoy", position)
    assert via.via_convoy


def test_parse_coast_in_parentheses():
    position = create_starting_position()
    setup(position, {Power.FRANCE: ["F MAO"]})
    order = OrderParser.parse_order("F MAO - Spa (nc)", position)
    assert order.destination == Location("Spa", Coast.NORTH)


def test_parse_adjustment_orders():
    position = create_starting_position()
    build = OrderParser.parse_order("Build F StP/nc", position, Power.RUSSIA)
    assert build == BuildOrder(Power.RUSSIA, UnitType.FLEET, Location("StP", Coast.NORTH))
    assert OrderParser.parse_order("Waive", position, Power.RUSSIA) == WaiveOrder(Power.RUSSIA)
    # Build orders need to know who is building
    assert OrderParser.parse_order("Build A Mos", position) is None


def test_parse_unknown_unit():
    position = create_starting_position()
    assert OrderParser.parse_order("A Bur - Par", position) is None
    # With a power the unit is described as written, so validation can report it
    order = OrderParser.parse_order("A Bur - Par", position, Power.FRANCE)
    assert order.validate(position) == ValidationError.UNIT_NOT_FOUND


def test_move_validation(position):
    army = place(position, Power.FRANCE, "A Par")
    fleet = place(position, Power.FRANCE, "F Bre")

    assert MoveOrder(army, Location("Bur")).validate(position) is None
    assert MoveOrder(army, Location("Mun")).validate(position) == ValidationError.ILLEGAL_DESTINATION
    assert MoveOrder(army, Location("Par")).validate(position) == ValidationError.ILLEGAL_DESTINATION
    assert MoveOrder(fleet, Location("Par")).validate(position) == ValidationError.ILLEGAL_DESTINATION
    assert MoveOrder(fleet, Location("MAO")).validate(position) is None
    assert MoveOrder(fleet, Location("Gas"), via_convoy=True).validate(position) == \
        ValidationError.WRONG_UNIT_KIND


def test_army_move_by_sea(position):
    army = place(position, Power.ENGLAND, "A Lon")
    assert MoveOrder(army, Location("Bel")).validate(position) is None
    assert MoveOrder(army, Location("NTH")).validate(position) == ValidationError.ILLEGAL_DESTINATION
    inland = place(position, Power.FRANCE, "A Par")
    assert MoveOrder(inland, Location("Lon"), via_convoy=True).validate(position) == \
        ValidationError.CONVOY_ROUTE_IMPOSSIBLE


def test_fleet_coast_validation(position):
    mao = place(position, Power.FRANCE, "F MAO")
    gas = place(position, Power.FRANCE, "F Gas")

    assert MoveOrder(mao, Location("Spa")).validate(position) == ValidationError.AMBIGUOUS_COAST
    assert MoveOrder(mao, Location("Spa", Coast.SOUTH)).validate(position) is None

    # Only one coast reachable: the coast is inferred
    order = MoveOrder(gas, Location("Spa"))
    assert order.validate(position) is None
    assert order.resolved_destination(position) == Location("Spa", Coast.NORTH)
    assert MoveOrder(gas, Location("Spa", Coast.SOUTH)).validate(position) == \
        ValidationError.ILLEGAL_DESTINATION


def test_unit_ownership(position):
    place(position, Power.FRANCE, "A Par")
    impostor = Unit(Power.GERMANY, UnitType.ARMY, Location("Par"))
    assert HoldOrder(impostor).validate(position) == ValidationError.UNIT_NOT_OWNED
    missing = Unit(Power.FRANCE, UnitType.ARMY, Location("Bur"))
    assert HoldOrder(missing).validate(position) == ValidationError.UNIT_NOT_FOUND
    wrong_kind = Unit(Power.FRANCE, UnitType.FLEET, Location("Par"))
    assert HoldOrder(wrong_kind).validate(position) == ValidationError.UNIT_NOT_FOUND


def test_support_validation(position):
    mar = place(position, Power.FRANCE, "A Mar")
    place(position, Power.FRANCE, "A Par")
    place(position, Power.GERMANY, "A Mun")

    assert SupportMoveOrder(mar, Location("Par"), Location("Bur")).validate(position) is None
    # Marseilles cannot reach Picardy
    assert SupportMoveOrder(mar, Location("Par"), Location("Pic")).validate(position) == \
        ValidationError.SUPPORT_TARGET_INVALID
    # Nothing in Gascony to support
    assert SupportHoldOrder(mar, Location("Gas")).validate(position) == \
        ValidationError.SUPPORT_TARGET_INVALID
    # Supporting a foreign unit is allowed
    assert SupportMoveOrder(mar, Location("Mun"), Location("Bur")).validate(position) is None
    # A unit cannot support itself
    assert SupportHoldOrder(mar, Location("Mar")).validate(position) == \
        ValidationError.SUPPORT_TARGET_INVALID


def test_convoy_validation(position):
    fleet = place(position, Power.ENGLAND, "F NTH")
    coastal_fleet = place(position, Power.ENGLAND, "F Lon")
    place(position, Power.ENGLAND, "A Yor")

    assert ConvoyOrder(fleet, Location("Yor"), Location("Nwy")).validate(position) is None
    assert ConvoyOrder(coastal_fleet, Location("Yor"), Location("Nwy")).validate(position) == \
        ValidationError.CONVOY_ROUTE_IMPOSSIBLE
    assert ConvoyOrder(fleet, Location("Lon"), Location("Nwy")).validate(position) == \
        ValidationError.WRONG_UNIT_KIND
    assert ConvoyOrder(fleet, Location("Edi"), Location("Nwy")).validate(position) == \
        ValidationError.UNIT_NOT_FOUND


def test_build_validation():
    position = create_starting_position()
    position.remove_unit("Par")
    position.remove_unit("Bre")
    position.remove_unit("StP")
    position.set_sc_owner("Spa", Power.FRANCE)

    assert BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Par")).validate(position) is None
    assert BuildOrder(Power.FRANCE, UnitType.FLEET, Location("Par")).validate(position) == \
        ValidationError.WRONG_UNIT_KIND
    # Occupied
    assert BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Mar")).validate(position) == \
        ValidationError.BUILD_SITE_INVALID
    # Owned but not a home center
    assert BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Spa")).validate(position) == \
        ValidationError.BUILD_SITE_INVALID
    assert BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Spa")).validate(
        position, BuildRule.ANY_OWNED) is None
    # Someone else's home center
    assert BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Mun")).validate(position) == \
        ValidationError.BUILD_SITE_INVALID

    assert BuildOrder(Power.RUSSIA, UnitType.FLEET, Location("StP")).validate(position) == \
        ValidationError.AMBIGUOUS_COAST
    assert BuildOrder(Power.RUSSIA, UnitType.FLEET, Location("StP", Coast.NORTH)).validate(
        position) is None


def test_retreat_and_disband_validation(position):
    unit = Unit(Power.AUSTRIA, UnitType.ARMY, Location("Vie"))
    position.dislodged_units["Vie"] = DislodgedUnit(
        unit, "Gal", retreat_options=(Location("Tri"), Location("Tyr"))
    )

    assert RetreatOrder(unit, Location("Tyr")).validate(position) is None
    assert RetreatOrder(unit, Location("Gal")).validate(position) == \
        ValidationError.ILLEGAL_DESTINATION
    assert DisbandOrder(unit).validate(position) is None

    stranger = Unit(Power.RUSSIA, UnitType.ARMY, Location("Vie"))
    assert RetreatOrder(stranger, Location("Tyr")).validate(position) == \
        ValidationError.UNIT_NOT_OWNED


def test_order_strings():
    position = create_starting_position()
    assert str(OrderParser.parse_order("A Par - Bur", position)) == "A Par - Bur"
    assert str(OrderParser.parse_order("F Bre S A Par - Pic", position)) == "F Bre S Par - Pic"
    assert str(BuildOrder(Power.FRANCE, UnitType.ARMY, Location("Par"))) == "Build A Par"
