# ImageBridge - PDF Image Conversion
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Object model, sample transform and dispatch for the image bridge."""
