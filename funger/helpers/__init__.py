from .time_helper import TimeHelper
from .lock_helper import LockHelper
from .logging_helper import LoggingHelper
from .data_helper import DataHelper
from .catalog_helper import CatalogHelper, GRID_SIZE
from .game_state_helper import GameStateHelper
from .economy_helper import EconomyHelper
from .grid_helper import GridHelper
from .reward_helper import RewardHelper
from .session_helper import SessionHelper
