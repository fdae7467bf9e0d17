"""Capability descriptor: per-robot capabilities and their bindings."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RobotTopics(_CamelModel):
    """Channel and action bindings."""

    cmd_vel: str
    odom: str
    rgb_camera: str | None = None
    depth_camera: str | None = None
    camera_info: str | None = None
    imu: str | None = None
    laser: str | None = None
    sonar: str | None = None
    joint_states: str | None = None
    move_robot_action: str | None = None
    move_arm_action: str | None = None
    gripper_action: str | None = None
    leds: str | None = None
    sound: str | None = None
    panic: str | None = None
    external_pose: str | None = None


class MovementParams(_CamelModel):
    """Numeric movement parameters."""

    max_linear_speed: float = Field(gt=0)  # m/s
    max_angular_speed: float = Field(gt=0)  # rad/s
    rotation_speed: float = Field(gt=0)  # rad/s for feedback rotations
    backward_distance: float  # meters for negative feedback
    backward_duration: int = Field(ge=0)  # milliseconds


class Capabilities(_CamelModel):
    has_camera: bool = False
    has_depth_camera: bool = False
    has_arm: bool = False
    has_leds: bool = False
    has_sound: bool = False
    has_laser: bool = False
    has_sonar: bool = False
    has_imu: bool = False


# Capability flag -> topic bindings that must be non-empty when it is set
CAPABILITY_BINDINGS: dict[str, tuple[str, ...]] = {
    "has_camera": ("rgb_camera",),
    "has_depth_camera": ("depth_camera",),
    "has_arm": ("move_arm_action",),
    "has_leds": ("leds",),
    "has_sound": ("sound",),
    "has_laser": ("laser",),
    "has_sonar": ("sonar",),
    "has_imu": ("imu",),
}


class RobotConfig(_CamelModel):
    """Declarative description of one robot."""

    name: str
    display_name: str
    description: str = ""
    topics: RobotTopics
    movement_params: MovementParams
    capabilities: Capabilities
    arm_actions: list[str] = Field(default_factory=list)
    gripper_actions: list[str] = Field(default_factory=list)

    def contract_violations(self) -> list[str]:
        """Capabilities flagged true without a non-empty binding."""
        violations = []
        for flag, bindings in CAPABILITY_BINDINGS.items():
            if not getattr(self.capabilities, flag):
                continue
            for binding in bindings:
                value = getattr(self.topics, binding)
                if not value or not value.strip():
                    violations.append(f"{to_camel(flag)} requires topics.{to_camel(binding)}")
        return violations

    def available_capabilities(self) -> list[str]:
        """Capabilities that are both flagged and bound."""
        available = []
        for flag, bindings in CAPABILITY_BINDINGS.items():
            if getattr(self.capabilities, flag) and all(
                (getattr(self.topics, b) or "").strip() for b in bindings
            ):
                available.append(to_camel(flag))
        return available

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


ROBOMASTER = RobotConfig(
    name="robomaster",
    display_name="RoboMaster S1",
    description="DJI RoboMaster S1 educational robot",
    topics=RobotTopics(
        cmd_vel="/robomaster/cmd_vel",
        odom="/robomaster/odom",
        rgb_camera="/robomaster/camera/image_color",
        move_robot_action="/robomaster/move_robot_world_ref",
        move_arm_action="/robomaster/move_arm_pose",
        gripper_action="/robomaster/gripper",
        leds="/robomaster/leds/color",
        sound="/robomaster/cmd_sound",
        panic="/robomaster/panic",
        external_pose="/optitrack/robomaster_frova",
    ),
    movement_params=MovementParams(
        max_linear_speed=3.5,
        max_angular_speed=6.0,
        rotation_speed=2.5,
        backward_distance=-0.2,
        backward_duration=300,
    ),
    capabilities=Capabilities(
        has_camera=True,
        has_arm=True,
        has_leds=True,
        has_sound=True,
    ),
    arm_actions=["open_box", "close_box"],
    gripper_actions=["open", "close"],
)

TIAGO = RobotConfig(
    name="tiago",
    display_name="TIAGo Robot",
    description="PAL Robotics TIAGo mobile manipulator robot",
    topics=RobotTopics(
        cmd_vel="/cmd_vel",
        odom="/mobile_base_controller/odom",
        rgb_camera="/head_front_camera/rgb/image_raw",
        depth_camera="/head_front_camera/depth/image_raw",
        camera_info="/head_front_camera/rgb/camera_info",
        joint_states="/joint_states",
        move_arm_action="/arm_controller/joint_trajectory",
        gripper_action="/gripper_controller/joint_trajectory",
        imu="/base_imu",
        laser="/scan_raw",
        sonar="/sonar_base",
    ),
    movement_params=MovementParams(
        max_linear_speed=1.0,
        max_angular_speed=1.0,
        rotation_speed=0.8,
        backward_distance=-0.1,
        backward_duration=500,
    ),
    capabilities=Capabilities(
        has_camera=True,
        has_depth_camera=True,
        has_arm=True,
        has_laser=True,
        has_sonar=True,
        has_imu=True,
    ),
)

BUILTIN_ROBOTS: dict[str, RobotConfig] = {
    ROBOMASTER.name: ROBOMASTER,
    TIAGO.name: TIAGO,
}
