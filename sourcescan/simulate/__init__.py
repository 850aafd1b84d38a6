from .simulate import simulate_epochs
