# cli.py - cashier console
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import IntPrompt, Confirm, Prompt
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.text import Text
from rich import box

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from pos.config import settings
from pos.errors import PaymentValidationError, PosError, ProductValidationError
from pos.logger import setup_logger
from pos.models import CartLine, DashboardStats, Notice, Product
from pos.session import PosSession

console = Console()
_prompt_session: Optional[PromptSession] = None

status_message = "Ready"

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


def format_currency(amount: int) -> str:
    # id-ID grouping: Rp 1.250.000
    return "Rp " + f"{amount:,}".replace(",", ".")


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Product], title: str = "📦 Products"):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=6)
    table.add_column("Name", style="bold", width=24)
    table.add_column("SKU", width=12)
    table.add_column("Category", width=14)
    table.add_column("Price", justify="right", width=14)
    table.add_column("Stock", justify="right", width=7)
    table.add_column("Status", width=9)

    for p in products:
        stock_style = "red" if p.is_low_stock else "green"
        table.add_row(
            str(p.id),
            p.name,
            p.sku,
            p.category_name or "-",
            format_currency(p.sell_price),
            f"[{stock_style}]{p.stock}[/{stock_style}]",
            p.status.value,
        )
    console.print(table)


def show_cart(lines: List[CartLine], total: int):
    title = Text()
    title.append("🛒 Cart", style="bold")
    title.append(f" - Total: {format_currency(total)}", style="bold green")

    if not lines:
        console.print(Panel("Cart is empty 🛍️", title=title, style="blue"))
        return

    table = Table(box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("ID", style="dim", width=6)
    table.add_column("Product", style="bold", width=28)
    table.add_column("Qty", justify="right", width=6)
    table.add_column("Price", justify="right", width=14)
    table.add_column("Subtotal", justify="right", width=14)

    for line in lines:
        table.add_row(
            str(line.product_id),
            line.name,
            str(line.quantity),
            format_currency(line.sell_price),
            format_currency(line.subtotal),
        )

    console.print(Panel(table, title=title, border_style="blue"))


def show_dashboard(stats: DashboardStats):
    grid = Table.grid(padding=(0, 4))
    for _ in range(4):
        grid.add_column(justify="center")
    grid.add_row("Products", "Categories", "Low stock", "In cart")
    grid.add_row(
        f"[bold]{stats.total_products}[/bold]",
        f"[bold]{stats.total_categories}[/bold]",
        f"[bold red]{stats.low_stock}[/bold red]",
        f"[bold]{stats.cart_items}[/bold]",
    )
    console.print(Panel(grid, title="📊 Dashboard", border_style="magenta"))

    if stats.low_stock_products:
        table = Table(title="Low stock", box=box.SIMPLE, header_style="bold red")
        table.add_column("Product")
        table.add_column("Stock", justify="right")
        table.add_column("Min", justify="right")
        for p in stats.low_stock_products:
            table.add_row(p.name, str(p.stock), str(p.min_stock))
        console.print(table)


def show_notices(notices: List[Optional[Notice]]):
    for n in notices:
        if n is not None:
            console.print(f"[yellow]⚠ {n}[/yellow]")


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# Backend call wrapper
# ---------------------------
async def try_api(coro, success_msg: Optional[str] = None):
    """
    Awaits coro with a spinner. Returns its result, or None when the call failed;
    the failure is shown as a status panel.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = await coro

        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except ProductValidationError as e:
        status_message = f"Error: {e}"
        for field, msg in e.errors.items():
            console.print(f"[red]{field}: {msg}[/red]")
        console.print(show_status("Please fix the form errors.", False))
        return None
    except PosError as e:
        status_message = f"Error: {e}"
        console.print(show_status(f"Error: {e}", False))
        return None


# ---------------------------
# Input helpers with autocomplete
# ---------------------------
def product_completer(pos: PosSession) -> WordCompleter:
    words = []
    for p in pos.catalog.active_products():
        words.extend([str(p.id), p.sku, p.name])
    return WordCompleter([w for w in words if w], ignore_case=True)


async def ask(message: str, completer=None, default: str = "") -> str:
    global _prompt_session
    if _prompt_session is None:
        _prompt_session = PromptSession()
    return await _prompt_session.prompt_async(f"{message} ", completer=completer, style=custom_style, default=default)


def resolve_product(pos: PosSession, term: str) -> Optional[Product]:
    term = term.strip()
    if term.isdigit() and pos.catalog.get(int(term)):
        return pos.catalog.get(int(term))
    by_code = pos.catalog.find_by_barcode(term)
    if by_code:
        return by_code
    matches = pos.catalog.filter_products(term)
    exact = [p for p in matches if p.sku.lower() == term.lower() or p.name.lower() == term.lower()]
    if exact:
        return exact[0]
    if len(matches) == 1:
        return matches[0]
    if matches:
        show_products(matches, title="Several products match")
    else:
        console.print(f"[yellow]No product matches '{term}'[/yellow]")
    return None


async def product_form(pos: PosSession, product: Optional[Product] = None) -> Dict[str, Any]:
    cats = ", ".join(f"{c.id}={c.name}" for c in pos.catalog.categories) or "none"
    sups = ", ".join(f"{s.id}={s.name}" for s in pos.catalog.suppliers) or "none"
    current = product.model_dump() if product else {}

    def default(key, fallback=""):
        value = current.get(key)
        return "" if value is None and fallback == "" else str(value if value is not None else fallback)

    data: Dict[str, Any] = {
        "name": await ask("Name", default=default("name")),
        "sku": await ask("SKU", default=default("sku")),
        "barcode": await ask("Barcode (optional)", default=default("barcode")),
        "category_id": Prompt.ask(f"Category [{cats}]", default=default("category_id")),
        "supplier_id": Prompt.ask(f"Supplier (optional) [{sups}]", default=default("supplier_id")),
        "buy_price": Prompt.ask("Buy price", default=default("buy_price", 0)),
        "sell_price": Prompt.ask("Sell price", default=default("sell_price", 0)),
        "stock": Prompt.ask("Stock", default=default("stock", 0)),
        "min_stock": Prompt.ask("Minimum stock", default=default("min_stock", 0)),
        "is_active": Confirm.ask("Active?", default=current.get("is_active", True)),
    }
    image = Prompt.ask("Image file to upload (optional)", default="")
    if image:
        path = Path(image).expanduser()
        if path.is_file():
            content_type = "image/png" if path.suffix.lower() == ".png" else "image/jpeg"
            url = await try_api(pos.catalog.upload_image(path.name, path.read_bytes(), content_type))
            if url:
                data["image_url"] = url
        else:
            console.print(f"[red]{path} is not a file; image skipped[/red]")
    elif product and product.image_url:
        data["image_url"] = product.image_url
    return data


# ---------------------------
# Layout and Header
# ---------------------------
def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)

    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    header.add_row(
        "🏁 POS",
        "[bold blue]Cashier Console[/bold blue]",
        f"[dim]{now}[/dim]"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Main menu
# ---------------------------
async def menu(pos: PosSession):
    global status_message

    console.clear()
    console.print(create_header())
    if await try_api(pos.load(), success_msg="Catalog loaded") is None and not pos.catalog.products:
        console.print("[yellow]Starting with an empty catalog[/yellow]")

    while True:
        if status_message:
            console.print(show_status(status_message, "Error" not in status_message))

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)

        options = [
            ("1", "📊 Dashboard", "7", "🛒 View cart"),
            ("2", "📦 Sales view (filtered)", "8", "✅ Checkout"),
            ("3", "🔍 Set search / category", "9", "➕ New product"),
            ("4", "📷 Scan barcode", "10", "✏️ Edit product"),
            ("5", "🛒 Add to cart", "11", "🗑️ Deactivate product"),
            ("6", "🔢 Set quantity / remove", "12", "🔄 Refresh catalog"),
            ("0", "🧹 Clear cart", "q", "👋 Quit"),
        ]

        for row in options:
            menu_table.add_row(*row)

        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = (await ask(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(0, 13)] + ["q", "quit", "exit"]),
        )).strip()

        if choice == "1":
            show_dashboard(pos.stats())

        elif choice == "2":
            show_products(pos.filter.results(), title="📦 For sale")

        elif choice == "3":
            pos.filter.search = await ask("Search name/SKU (blank for all)", default=pos.filter.search)
            cats = ", ".join(f"{c.id}={c.name}" for c in pos.catalog.categories)
            raw = Prompt.ask(f"Category id (blank for all) [{cats}]", default="")
            pos.filter.category_id = int(raw) if raw.strip().isdigit() else None
            show_products(pos.filter.results(), title="📦 For sale")

        elif choice == "4":
            # the camera pipeline hands over a decoded string, or nothing
            code = (await ask("Scan or type barcode (blank to cancel)")).strip() or None
            pos.filter.on_scan(code)
            show_products(pos.filter.results(), title=f"📦 Matches for '{pos.filter.search}'")

        elif choice == "5":
            term = await ask("Product (id, SKU, barcode or name)", completer=product_completer(pos))
            product = resolve_product(pos, term)
            if product:
                show_notices([pos.cart.add_item(product)])
                show_cart(pos.cart.lines(), pos.cart.total())

        elif choice == "6":
            term = await ask("Product in cart (id)", completer=WordCompleter([str(l.product_id) for l in pos.cart]))
            if term.strip().isdigit() and int(term) in pos.cart:
                qty = IntPrompt.ask("New quantity (0 removes)", default=pos.cart.get(int(term)).quantity)
                show_notices([pos.cart.set_quantity(int(term), qty)])
            else:
                console.print("[yellow]That product is not in the cart[/yellow]")
            show_cart(pos.cart.lines(), pos.cart.total())

        elif choice == "7":
            show_cart(pos.cart.lines(), pos.cart.total())

        elif choice == "8":
            total = pos.cart.total()
            show_cart(pos.cart.lines(), total)
            if not pos.cart.size():
                console.print(show_status("Cart is empty. Add products first.", False))
                continue
            customer = Prompt.ask("Customer name", default=settings.default_customer)
            method = Prompt.ask("Payment method", default=settings.default_payment_method)
            amount = IntPrompt.ask("Amount paid", default=total)
            try:
                payment = pos.payment(amount=amount, customer_name=customer, method=method)
            except PaymentValidationError as e:
                console.print(show_status(str(e), False))
                continue
            result = await try_api(pos.checkout(payment))
            if result is None:
                continue
            if result.ok:
                trx = result.transaction
                status_message = f"Transaction {trx.transaction_code} completed"
                console.print(Panel.fit(
                    f"[green]Transaction completed![/green]\n"
                    f"Code: [bold]{trx.transaction_code}[/bold]\n"
                    f"Total: [bold]{format_currency(trx.total_amount)}[/bold]\n"
                    f"Change: [bold]{format_currency(trx.change_amount)}[/bold]",
                    title="✅ Receipt"
                ))
                if result.refresh_error:
                    console.print(f"[yellow]Catalog not refreshed: {result.refresh_error}[/yellow]")
            else:
                status_message = f"Error: {result.error}"
                console.print(Panel.fit(f"[red]Checkout failed:[/red] {result.error}", title="❌ Checkout Failed"))
                if result.transaction is not None:
                    console.print("[yellow]Part of the sale was saved; checking out again resumes it.[/yellow]")

        elif choice == "9":
            data = await product_form(pos)
            notices = await try_api(pos.save_product(data), success_msg=f"Product '{data['name']}' added")
            show_notices(notices or [])

        elif choice == "10":
            term = await ask("Product to edit", completer=product_completer(pos))
            product = resolve_product(pos, term)
            if product:
                data = await product_form(pos, product)
                notices = await try_api(pos.save_product(data, product.id), success_msg=f"Product '{data['name']}' updated")
                show_notices(notices or [])

        elif choice == "11":
            term = await ask("Product to deactivate", completer=product_completer(pos))
            product = resolve_product(pos, term)
            if product and Confirm.ask(
                f"Deactivate '{product.name}'? (it is hidden from sale, not deleted)"
            ):
                notices = await try_api(pos.deactivate_product(product.id), success_msg=f"Product '{product.name}' deactivated")
                show_notices(notices or [])

        elif choice == "12":
            notices = await try_api(pos.refresh(), success_msg="Catalog refreshed")
            show_notices(notices or [])

        elif choice == "0":
            if Confirm.ask("Clear the cart?"):
                pos.cart.clear()
                status_message = "Cart cleared"

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Goodbye! 👋[/bold green]", title="Goodbye"))
                return

        console.print()
        console.rule(style="dim")


async def main():
    setup_logger(settings, console=False)
    async with PosSession.from_settings(settings) as pos:
        await menu(pos)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
