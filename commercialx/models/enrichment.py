from typing import Optional

from pydantic import BaseModel, Field

from commercialx.core.enums import RegistryConfidence


class RegistryDecode(BaseModel):
    """Flat record returned by the NHTSA vPIC VIN decoder."""

    vin: Optional[str] = None

    # Identity
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    series: Optional[str] = None

    # Classification
    vehicle_type: Optional[str] = None
    body_class: Optional[str] = None
    body_style: Optional[str] = None
    cab_type: Optional[str] = None
    doors: Optional[int] = None

    # Dimensions (inches)
    wheelbase: Optional[float] = None
    wheelbase_type: Optional[str] = None
    bed_length: Optional[float] = None
    bed_type: Optional[str] = None
    overall_length: Optional[float] = None
    overall_width: Optional[float] = None
    overall_height: Optional[float] = None

    # Weight & capacity (lbs)
    curb_weight: Optional[int] = None
    gvwr: Optional[int] = None
    gvwr_range: Optional[str] = None
    payload_capacity: Optional[int] = None
    gawr_front: Optional[int] = None
    gawr_rear: Optional[int] = None
    towing_capacity: Optional[int] = None
    fuel_tank_capacity_gallons: Optional[float] = None
    seating_capacity: Optional[int] = None
    seating_rows: Optional[int] = None

    # Engine & powertrain
    engine_model: Optional[str] = None
    engine_configuration: Optional[str] = None
    engine_cylinders: Optional[int] = None
    displacement_l: Optional[float] = None
    fuel_type_primary: Optional[str] = None
    fuel_type_secondary: Optional[str] = None
    electrification_level: Optional[str] = None
    battery_type: Optional[str] = None
    battery_kwh: Optional[float] = None
    battery_voltage: Optional[float] = None
    charging_time_l2_hours: Optional[float] = None
    turbo: Optional[str] = None
    engine_hp: Optional[int] = None

    # Transmission & drivetrain
    transmission: Optional[str] = None
    transmission_style: Optional[str] = None
    transmission_speeds: Optional[int] = None
    drive_type: Optional[str] = None

    # Axles & wheels
    axle_configuration: Optional[str] = None
    axles: Optional[int] = None
    wheels: Optional[str] = None

    # Safety & technology (raw provider strings, e.g. "Standard")
    abs: Optional[str] = None
    esc: Optional[str] = None
    traction_control: Optional[str] = None
    backup_camera: Optional[str] = None
    bluetooth_capable: Optional[str] = None
    tpms: Optional[str] = None

    # Manufacturing
    manufacturer: Optional[str] = None
    plant_city: Optional[str] = None
    plant_state: Optional[str] = None
    plant_country: Optional[str] = None

    # Decoder status
    error_code: Optional[str] = None
    error_text: Optional[str] = None


class FuelEconomyData(BaseModel):
    """Flat record returned by the EPA fuel economy service."""

    epa_id: Optional[int] = None

    mpg_city: Optional[float] = None
    mpg_highway: Optional[float] = None
    mpg_combined: Optional[float] = None
    mpge: Optional[float] = None

    electric_range: Optional[float] = None
    battery_capacity_kwh: Optional[float] = None
    charge_time_240v: Optional[float] = None

    annual_fuel_cost: Optional[float] = None
    co2_emissions: Optional[float] = None

    fuel_type: Optional[str] = None
    engine_description: Optional[str] = None
    transmission_description: Optional[str] = None
    drive_type: Optional[str] = None
    cylinders: Optional[int] = None
    displacement_l: Optional[float] = None
    atv_type: Optional[str] = None


class EnrichedVehicleSpec(BaseModel):
    """Registry decode merged with fuel-economy data.

    ``data_sources`` lists which providers contributed; callers must check
    ``has_source("epa")`` before trusting any fuel-economy-only field.
    """

    data_sources: list[str] = Field(default_factory=list)
    registry_confidence: RegistryConfidence = RegistryConfidence.LOW
    fuel_economy_available: bool = False

    vin: Optional[str] = None
    year: int
    make: str
    model: str
    trim: Optional[str] = None
    series: Optional[str] = None

    vehicle_type: Optional[str] = None
    body_class: Optional[str] = None
    body_style: Optional[str] = None
    cab_type: Optional[str] = None
    doors: Optional[int] = None

    wheelbase: Optional[float] = None
    wheelbase_type: Optional[str] = None
    bed_length: Optional[float] = None
    bed_type: Optional[str] = None
    overall_length: Optional[float] = None
    overall_width: Optional[float] = None
    overall_height: Optional[float] = None

    curb_weight: Optional[int] = None
    gvwr: Optional[int] = None
    gvwr_range: Optional[str] = None
    payload_capacity: Optional[int] = None
    seating_capacity: Optional[int] = None
    seating_rows: Optional[int] = None
    gawr_front: Optional[int] = None
    gawr_rear: Optional[int] = None
    towing_capacity: Optional[int] = None
    fuel_tank_capacity: Optional[float] = None

    backup_camera: Optional[bool] = None
    bluetooth_capable: Optional[bool] = None
    tpms: Optional[bool] = None

    engine_model: Optional[str] = None
    engine_description: Optional[str] = None
    engine_configuration: Optional[str] = None
    engine_cylinders: Optional[int] = None
    displacement_l: Optional[float] = None
    fuel_type_primary: str = "gasoline"
    fuel_type_secondary: Optional[str] = None
    electrification_level: Optional[str] = None

    battery_type: Optional[str] = None
    battery_kwh: Optional[float] = None
    battery_voltage: Optional[float] = None
    charging_time_l2_hours: Optional[float] = None
    electric_range: Optional[float] = None

    turbo: Optional[str] = None
    horsepower: Optional[int] = None

    mpg_city: Optional[float] = None
    mpg_highway: Optional[float] = None
    mpg_combined: Optional[float] = None
    mpge: Optional[float] = None
    annual_fuel_cost: Optional[float] = None
    co2_emissions: Optional[float] = None

    transmission: Optional[str] = None
    transmission_style: Optional[str] = None
    transmission_speeds: Optional[int] = None
    drive_type: Optional[str] = None

    axle_description: Optional[str] = None
    axles: Optional[int] = None
    rear_wheels: Optional[str] = None
    wheels: Optional[str] = None

    abs: Optional[str] = None
    esc: Optional[str] = None
    traction_control: Optional[str] = None

    manufacturer: Optional[str] = None
    plant_city: Optional[str] = None
    plant_state: Optional[str] = None
    plant_country: Optional[str] = None

    epa_id: Optional[int] = None

    def has_source(self, name: str) -> bool:
        return name in self.data_sources
