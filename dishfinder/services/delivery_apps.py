"""
Delivery platforms by country, and the city-string parsing used to pick them
"""
from typing import Dict, List, Optional

DELIVERY_APPS_BY_COUNTRY: Dict[str, List[str]] = {
    "India": ["Swiggy", "Zomato"],
    "USA": ["Uber Eats", "DoorDash", "Grubhub", "Postmates"],
    "Canada": ["Uber Eats", "DoorDash", "Just Eat Takeaway.com"],
    "UK": ["Uber Eats", "Just Eat Takeaway.com", "Deliveroo", "Grubhub"],
    "Australia": ["Uber Eats", "Just Eat Takeaway.com", "Deliveroo"],
    "New Zealand": ["Just Eat Takeaway.com", "Deliveroo"],
    "Ireland": ["Just Eat Takeaway.com", "Deliveroo"],
    "France": ["Uber Eats", "Just Eat Takeaway.com", "Deliveroo"],
    "Germany": ["Uber Eats", "Just Eat Takeaway.com"],
    "Belgium": ["Just Eat Takeaway.com", "Deliveroo"],
    "Netherlands": ["Just Eat Takeaway.com", "Deliveroo"],
    "Austria": ["Just Eat Takeaway.com"],
    "Bulgaria": ["Just Eat Takeaway.com", "Foodpanda"],
    "Denmark": ["Just Eat Takeaway.com"],
    "Israel": ["Just Eat Takeaway.com"],
    "Italy": ["Just Eat Takeaway.com"],
    "Luxembourg": ["Just Eat Takeaway.com"],
    "Poland": ["Just Eat Takeaway.com"],
    "Slovakia": ["Just Eat Takeaway.com"],
    "Spain": ["Just Eat Takeaway.com"],
    "Switzerland": ["Just Eat Takeaway.com"],
    "Singapore": ["Grab", "Foodpanda", "Deliveroo"],
    "Malaysia": ["Grab", "Foodpanda"],
    "Thailand": ["Grab", "Foodpanda"],
    "Indonesia": ["Grab"],
    "Vietnam": ["Grab"],
    "Philippines": ["Grab", "Foodpanda"],
    "Cambodia": ["Grab"],
    "Myanmar": ["Grab"],
    "Taiwan": ["Foodpanda"],
    "Hong Kong": ["Foodpanda", "Deliveroo"],
    "Kazakhstan": ["Foodpanda"],
    "Romania": ["Foodpanda"],
    "Qatar": ["Foodpanda", "Careem", "Talabat"],
    "United Arab Emirates": ["Foodpanda", "Deliveroo", "Noon", "Careem", "Talabat"],
    "Pakistan": ["Foodpanda", "Careem"],
    "Brazil": ["Rappi", "iFood", "Uber Eats"],
    "Mexico": ["Rappi", "iFood", "Uber Eats"],
    "Chile": ["Rappi", "Foodpanda", "PedidosYa"],
    "Colombia": ["Rappi", "Foodpanda", "iFood", "PedidosYa"],
    "Peru": ["Rappi", "Foodpanda", "PedidosYa"],
    "Uruguay": ["Rappi", "Foodpanda", "PedidosYa"],
    "Argentina": ["Rappi", "Foodpanda", "PedidosYa"],
    "Ecuador": ["Rappi", "PedidosYa"],
    "Paraguay": ["PedidosYa"],
    "Bolivia": ["PedidosYa"],
    "Costa Rica": ["Rappi"],
    "South Korea": ["Uber Eats"],
    "Japan": ["Uber Eats"],
    "Saudi Arabia": ["Noon", "Careem"],
    "Egypt": ["Noon", "Careem", "Talabat"],
    "Kuwait": ["Talabat"],
    "Bahrain": ["Talabat"],
    "Oman": ["Careem", "Talabat"],
    "Jordan": ["Careem", "Talabat"],
    "Iraq": ["Talabat"],
}

KNOWN_DELIVERY_APPS = sorted({app for apps in DELIVERY_APPS_BY_COUNTRY.values() for app in apps})


def extract_country_from_city(city: str) -> Optional[str]:
    """
    Find the country in a city string. Accepts "City, Country",
    "City - Country" and "City Country" as returned by the places search.
    """
    if not city or not city.strip():
        return None

    if "," in city:
        last_part = city.split(",")[-1].strip()
        if " - " in last_part:
            country = last_part.split(" - ")[-1].strip()
            if country in DELIVERY_APPS_BY_COUNTRY:
                return country
        if last_part in DELIVERY_APPS_BY_COUNTRY:
            return last_part

    if " - " in city:
        country = city.split(" - ")[-1].strip()
        if country in DELIVERY_APPS_BY_COUNTRY:
            return country

    for country in DELIVERY_APPS_BY_COUNTRY:
        if city.endswith(country) or f" {country}" in city:
            return country

    return None


def get_delivery_apps_for_city(city: str) -> dict:
    country = extract_country_from_city(city)
    available_apps = list(DELIVERY_APPS_BY_COUNTRY.get(country, [])) if country else []
    return {
        "country": country,
        "available_apps": available_apps,
        "has_apps": len(available_apps) > 0,
    }
