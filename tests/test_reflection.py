import pytest

from claw import mapping
from claw.codec import Bools, Numbers, Struct
from claw.enums import EnumGroup, EnumGroups, EnumValue
from claw.mapping import FieldType, Map
from claw.reflect_lists import list_from
from claw.reflection import (
    FieldDescr,
    PackageDescr,
    StructDescr,
    StructDescrs,
    StructImpl,
    get_value,
)
from claw.registry import package_descr, register_package
from claw.values import (
    value_of_bool,
    value_of_enum,
    value_of_list,
    value_of_number,
    value_of_string,
    value_of_struct,
)

MFG_PATH = "example.com/claw/testing/reflection/vehicles/manufacturers"
CARS_PATH = "example.com/claw/testing/reflection/cars"
TRUCKS_PATH = "example.com/claw/testing/reflection/trucks"
VEHICLES_PATH = "example.com/claw/testing/reflection/vehicles"

MANUFACTURER = EnumGroup(
    "Manufacturer",
    8,
    (
        EnumValue("Unknown", 0, 8),
        EnumValue("Toyota", 1, 8),
        EnumValue("Ford", 2, 8),
        EnumValue("Tesla", 3, 8),
    ),
)
MODEL = EnumGroup(
    "Model",
    8,
    (EnumValue("Unknown", 0, 8), EnumValue("ModelS", 1, 8), EnumValue("Venza", 2, 8)),
)
VEHICLE_TYPE = EnumGroup(
    "Type",
    8,
    (EnumValue("Unknown", 0, 8), EnumValue("Car", 1, 8), EnumValue("Truck", 2, 8)),
)

CAR_MAPPING = Map(
    name="Car",
    pkg="cars",
    path=CARS_PATH,
    fields=[
        mapping.FieldDescr("Year", FieldType.UINT16, 0, package="cars", full_path=CARS_PATH),
        mapping.FieldDescr(
            "Manufacturer",
            FieldType.UINT8,
            1,
            is_enum=True,
            enum_group="manufacturers.Manufacturer",
            package="manufacturers",
            full_path=MFG_PATH,
        ),
        mapping.FieldDescr(
            "Model", FieldType.UINT8, 2, is_enum=True, enum_group="Model",
            package="cars", full_path=CARS_PATH,
        ),
    ],
)
CAR_DESCR = StructDescr(
    name="Car",
    pkg="cars",
    path=CARS_PATH,
    mapping=CAR_MAPPING,
    fields=[
        FieldDescr(CAR_MAPPING.fields[0]),
        FieldDescr(CAR_MAPPING.fields[1], enum_group=MANUFACTURER),
        FieldDescr(CAR_MAPPING.fields[2], enum_group=MODEL),
    ],
)

TRUCK_MAPPING = Map(
    name="Truck",
    pkg="trucks",
    path=TRUCKS_PATH,
    fields=[mapping.FieldDescr("Axles", FieldType.UINT8, 0, full_path=TRUCKS_PATH)],
)
TRUCK_DESCR = StructDescr(
    name="Truck",
    pkg="trucks",
    path=TRUCKS_PATH,
    mapping=TRUCK_MAPPING,
    fields=[FieldDescr(TRUCK_MAPPING.fields[0])],
)

VEHICLE_MAPPING = Map(
    name="Vehicle",
    pkg="vehicles",
    path=VEHICLES_PATH,
    fields=[
        mapping.FieldDescr(
            "Type", FieldType.UINT8, 0, is_enum=True, enum_group="Type",
            package="vehicles", full_path=VEHICLES_PATH,
        ),
        mapping.FieldDescr(
            "Car", FieldType.STRUCT, 1, struct_name="cars.Car", package="cars",
            full_path=CARS_PATH, mapping=CAR_MAPPING,
        ),
        mapping.FieldDescr(
            "Truck", FieldType.LIST_STRUCTS, 2, package="trucks",
            full_path=TRUCKS_PATH, mapping=TRUCK_MAPPING,
        ),
        mapping.FieldDescr(
            "Types", FieldType.LIST_UINT8, 3, is_enum=True, enum_group="Type",
            package="vehicles", full_path=VEHICLES_PATH,
        ),
        mapping.FieldDescr(
            "Bools", FieldType.LIST_BOOLS, 4, package="vehicles", full_path=VEHICLES_PATH
        ),
    ],
)
VEHICLE_DESCR = StructDescr(
    name="Vehicle",
    pkg="vehicles",
    path=VEHICLES_PATH,
    mapping=VEHICLE_MAPPING,
    fields=[
        FieldDescr(VEHICLE_MAPPING.fields[0], enum_group=VEHICLE_TYPE),
        FieldDescr(VEHICLE_MAPPING.fields[1], struct_descr=CAR_DESCR),
        FieldDescr(VEHICLE_MAPPING.fields[2], struct_descr=TRUCK_DESCR),
        FieldDescr(VEHICLE_MAPPING.fields[3], enum_group=VEHICLE_TYPE),
        FieldDescr(VEHICLE_MAPPING.fields[4]),
    ],
)

MFG_PKG = PackageDescr(
    name="manufacturers", full_path=MFG_PATH, enums=EnumGroups((MANUFACTURER,))
)
CARS_PKG = PackageDescr(
    name="cars",
    full_path=CARS_PATH,
    enums=EnumGroups((MODEL,)),
    structs=StructDescrs((CAR_DESCR,)),
)
VEHICLES_PKG = PackageDescr(
    name="vehicles",
    full_path=VEHICLES_PATH,
    imports=(CARS_PKG, MFG_PKG),
    enums=EnumGroups((VEHICLE_TYPE,)),
    structs=StructDescrs((VEHICLE_DESCR,)),
)

for _pkg in (MFG_PKG, CARS_PKG, VEHICLES_PKG):
    if package_descr(_pkg.full_path) is None:
        register_package(_pkg)

VEHICLES_WANT = [
    ("Type", FieldType.UINT8, 0, True, ("Type", 3, 8), None),
    ("Car", FieldType.STRUCT, 1, False, None, None),
    ("Truck", FieldType.LIST_STRUCTS, 2, False, None, "Truck"),
]


def _normal_vehicle() -> StructImpl:
    vehicle = Struct(VEHICLE_MAPPING)
    vehicle.set_no_zero_type_compression()
    vehicle.set_field(0, 1)
    car = Struct(CAR_MAPPING)
    car.set_field(0, 2010)
    car.set_field(1, 1)
    car.set_field(2, 2)
    vehicle.set_field(1, car)
    vehicle.set_field(4, Bools([True, False, True]))
    vehicle.set_field(3, Numbers(FieldType.LIST_UINT8, [1, 2]))
    return VEHICLE_DESCR.wrap(vehicle)


def _reflect_vehicle() -> StructImpl:
    cars_pkg = package_descr(CARS_PATH)
    mfg_pkg = package_descr(MFG_PATH)
    car_descr = cars_pkg.structs.by_name("Car")
    car_value = car_descr.new()
    car_value.set(car_descr.field_descr_by_name("Year"), value_of_number(2010, FieldType.UINT16))
    group = mfg_pkg.enums.by_name("Manufacturer")
    number = group.by_value(1).number
    car_value.set(car_descr.field_descr_by_name("Manufacturer"), value_of_enum(number, group))
    model_group = cars_pkg.enums.by_name("Model")
    number = model_group.by_name("Venza").number
    car_value.set(car_descr.field_descr_by_name("Model"), value_of_enum(number, model_group))

    vehicle_descr = package_descr(VEHICLES_PATH).structs.by_name("Vehicle")
    vehicle_value = vehicle_descr.new()
    vehicle_value.set(vehicle_descr.field_descr_by_name("Car"), value_of_struct(car_value))
    return vehicle_value


@pytest.mark.parametrize("build", [_normal_vehicle, _reflect_vehicle])
def test_get_struct_descr(build):
    cs = build()
    descr = cs.descr
    assert descr is package_descr(VEHICLES_PATH).structs.by_name("Vehicle")
    for want, got in zip(VEHICLES_WANT, descr.fields):
        name, ftype, num, is_enum, group, item = want
        assert got.name == name
        assert got.type == ftype
        assert got.field_num == num
        assert got.is_enum == is_enum
        if is_enum:
            assert (got.enum_group.name, len(got.enum_group), got.enum_group.size) == group
        if item is not None:
            assert got.item_type() == item

    car_struct = get_value(cs.raw, 1).as_struct()
    year = car_struct.get(car_struct.descr.field_descr_by_name("Year"))
    assert year.as_uint() == 2010
    mfg = car_struct.get(car_struct.descr.field_descr_by_name("Manufacturer"))
    assert mfg.as_enum().number == 1
    assert mfg.as_enum().name == "Toyota"


def test_get_value_uses_registry_for_enums():
    car = Struct(CAR_MAPPING)
    car.set_field(1, 3)
    assert get_value(car, 1).as_enum().name == "Tesla"
    assert get_value(car, 0) is None


def test_get_value_struct_builds_descr_from_mapping():
    vehicle = _normal_vehicle().raw
    car = get_value(vehicle, 1).as_struct()
    assert car.descr.name == "Car"
    assert [fd.name for fd in car.descr.fields] == ["Year", "Manufacturer", "Model"]
    assert car.get(car.descr.field_descr_by_index(0)).as_uint() == 2010


def test_field_descr_by_name_rules():
    assert VEHICLE_DESCR.field_descr_by_name("Missing") is None
    with pytest.raises(ValueError):
        VEHICLE_DESCR.field_descr_by_name("car")
    with pytest.raises(ValueError):
        VEHICLE_DESCR.field_descr_by_name("")


def test_field_descr_by_index():
    assert VEHICLE_DESCR.field_descr_by_index(4).name == "Bools"
    with pytest.raises(IndexError):
        VEHICLE_DESCR.field_descr_by_index(5)


def test_item_type_and_enum_group_errors():
    car_fd = VEHICLE_DESCR.field_descr_by_name("Car")
    with pytest.raises(TypeError):
        car_fd.item_type()
    with pytest.raises(TypeError):
        car_fd.enum_group


def test_struct_descrs_lookup():
    descrs = VEHICLES_PKG.structs
    assert len(descrs) == 1
    assert descrs.get(0) is VEHICLE_DESCR
    assert descrs.by_name("Vehicle") is VEHICLE_DESCR
    assert descrs.by_name("Nope") is None


def test_fields_yields_every_field():
    pairs = list(_normal_vehicle().fields())
    assert [fd.name for fd, _ in pairs] == ["Type", "Car", "Truck", "Types", "Bools"]
    assert pairs[2][1] is None
    assert pairs[0][1].as_enum().name == "Car"
    assert pairs[4][1].to_python() == [True, False, True]


def test_has_and_clear():
    vehicle = _normal_vehicle()
    car_fd = VEHICLE_DESCR.field_descr_by_name("Car")
    assert vehicle.has(car_fd) is True
    vehicle.clear(car_fd)
    assert vehicle.has(car_fd) is False
    assert vehicle.get(car_fd) is None


def test_new_returns_empty_of_same_type():
    fresh = _normal_vehicle().new()
    assert fresh.descr is VEHICLE_DESCR
    assert all(value is None for _, value in fresh.fields())


def test_new_field_scalars():
    car = CAR_DESCR.new()
    assert car.new_field(CAR_DESCR.field_descr_by_name("Year")).as_uint() == 0
    mfg = car.new_field(CAR_DESCR.field_descr_by_name("Manufacturer"))
    assert mfg.is_enum
    assert mfg.as_enum().name == "Unknown"


def test_new_field_struct_and_list_of_structs():
    vehicle = VEHICLE_DESCR.new()
    car = vehicle.new_field(VEHICLE_DESCR.field_descr_by_name("Car")).as_struct()
    assert car.descr is CAR_DESCR

    truck_fd = VEHICLE_DESCR.field_descr_by_name("Truck")
    trucks = vehicle.new_field(truck_fd).as_list()
    assert len(trucks) == 0
    item = trucks.new()
    axles = TRUCK_DESCR.field_descr_by_name("Axles")
    item.set(axles, value_of_number(3, FieldType.UINT8))
    trucks.append(value_of_struct(item))
    vehicle.set(truck_fd, value_of_list(trucks))

    got = vehicle.get(truck_fd).as_list()
    assert len(got) == 1
    assert got.get(0).as_struct().get(axles).as_uint() == 3


def test_set_list_value():
    vehicle = VEHICLE_DESCR.new()
    bools_fd = VEHICLE_DESCR.field_descr_by_name("Bools")
    vehicle.set(bools_fd, value_of_list(list_from([False, True])))
    assert vehicle.get(bools_fd).to_python() == [False, True]


def test_set_wrong_type_raises():
    vehicle = VEHICLE_DESCR.new()
    with pytest.raises(TypeError):
        vehicle.set(VEHICLE_DESCR.field_descr_by_name("Type"), value_of_string("x"))
    with pytest.raises(TypeError):
        vehicle.set(VEHICLE_DESCR.field_descr_by_name("Bools"), value_of_bool(True))
    with pytest.raises(TypeError):
        vehicle.set(
            VEHICLE_DESCR.field_descr_by_name("Bools"),
            value_of_list(list_from([1, 2], FieldType.LIST_UINT8)),
        )


def test_wrap_rejects_other_type():
    with pytest.raises(ValueError):
        VEHICLE_DESCR.wrap(Struct(CAR_MAPPING))


def test_round_trip_through_wire():
    encoded = _normal_vehicle().raw.marshal()
    decoded = Struct(VEHICLE_MAPPING)
    decoded.unmarshal(encoded)
    vehicle = VEHICLE_DESCR.wrap(decoded)
    assert vehicle.get(VEHICLE_DESCR.field_descr_by_name("Type")).as_enum().name == "Car"
    assert vehicle.get(VEHICLE_DESCR.field_descr_by_name("Types")).to_python() == [1, 2]
    car = vehicle.get(VEHICLE_DESCR.field_descr_by_name("Car")).as_struct()
    model = car.get(CAR_DESCR.field_descr_by_name("Model"))
    assert model.as_enum().name == "Venza"