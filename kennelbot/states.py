from aiogram.fsm.state import State, StatesGroup


class CareStates(StatesGroup):
    observation_note = State()


__all__ = ["CareStates"]
