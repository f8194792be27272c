"""gridepi: stochastic spatial epidemic on a fixed 2D grid of individuals.

A discrete-time, agent-based model:
  - Nx × Ny grid, one individual per cell
  - Five health states: Susceptible, Infectious, Recovered, Dead, Vaccinated
  - Ordered per-step transitions (recover → die → vaccinate) for infectious cells
  - Local-contact infection: each infectious cell meets up to n_meeting cells
    drawn from its Manhattan ball of radius travel_radius
  - Optional reinfection of Recovered / Vaccinated individuals
  - Exact bookkeeping of aggregate counts, step by step

Rendering and UI live outside this package; they consume StepResult objects.
"""

__version__ = "0.1.0"
